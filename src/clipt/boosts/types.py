"""Boost types, their fixed duration/cost, and the boost state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from clipt.errors import ConflictError, ValidationError


class ContentType(str, Enum):
    POST = "post"
    STREAM = "stream"


class BoostType(str, Enum):
    SQUAD_BLAST = "squad_blast"
    CHAIN_REACTION = "chain_reaction"
    KING = "king"
    STREAM_SURGE = "stream_surge"


class BoostStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BoostSpec:
    boost_type: BoostType
    title: str
    description: str
    duration: timedelta
    cost: int
    content_types: frozenset[ContentType]


_ANY_CONTENT = frozenset({ContentType.POST, ContentType.STREAM})
_STREAM_ONLY = frozenset({ContentType.STREAM})

BOOST_SPECS: dict[BoostType, BoostSpec] = {
    BoostType.SQUAD_BLAST: BoostSpec(
        boost_type=BoostType.SQUAD_BLAST,
        title="Squad Blast",
        description="Pushes your clip to all of your friends' Squads Page for 24 hours.",
        duration=timedelta(hours=24),
        cost=40,
        content_types=_ANY_CONTENT,
    ),
    BoostType.CHAIN_REACTION: BoostSpec(
        boost_type=BoostType.CHAIN_REACTION,
        title="Chain Reaction",
        description="Each like/comment/share spreads your clip to 5 more users for 6 hours.",
        duration=timedelta(hours=6),
        cost=60,
        content_types=_ANY_CONTENT,
    ),
    BoostType.KING: BoostSpec(
        boost_type=BoostType.KING,
        title="I'm the King Now",
        description="Places your stream in the Top 10 for its game category for 2 hours.",
        duration=timedelta(hours=2),
        cost=80,
        content_types=_STREAM_ONLY,
    ),
    BoostType.STREAM_SURGE: BoostSpec(
        boost_type=BoostType.STREAM_SURGE,
        title="Stream Surge",
        description="Pushes your stream to 200+ active viewers for 30 minutes.",
        duration=timedelta(minutes=30),
        cost=50,
        content_types=_STREAM_ONLY,
    ),
}

VALID_TRANSITIONS: dict[BoostStatus, list[BoostStatus]] = {
    BoostStatus.ACTIVE: [BoostStatus.EXPIRED, BoostStatus.CANCELLED],
    BoostStatus.EXPIRED: [],
    BoostStatus.CANCELLED: [],
}


def get_spec(boost_type: BoostType | str) -> BoostSpec:
    """Look up the fixed spec for a boost type."""
    try:
        return BOOST_SPECS[BoostType(boost_type)]
    except ValueError as exc:
        raise ValidationError(f"Unknown boost type: {boost_type}") from exc


def expiry_for(boost_type: BoostType, created_at: datetime) -> datetime:
    """Expiry of a freshly created boost."""
    return created_at + get_spec(boost_type).duration


def validate_content_type(spec: BoostSpec, content_type: ContentType) -> None:
    """Raise ValidationError if the boost cannot target this kind of content."""
    if content_type not in spec.content_types:
        allowed = sorted(c.value for c in spec.content_types)
        raise ValidationError(
            f"{spec.title} can only be applied to: {', '.join(allowed)}",
        )


def validate_transition(current: BoostStatus, target: BoostStatus) -> None:
    """Validate a status transition. Raises ConflictError if invalid."""
    valid = VALID_TRANSITIONS.get(BoostStatus(current), [])
    if BoostStatus(target) not in valid:
        raise ConflictError(
            f"Invalid transition: {BoostStatus(current).value} -> {BoostStatus(target).value}",
            current=BoostStatus(current).value,
            target=BoostStatus(target).value,
        )
