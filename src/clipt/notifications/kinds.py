"""Notification kinds and their typed payloads.

Every notification this package creates goes through ``build_notification``,
which checks that the payload model matches the kind and renders the title,
message and reference fields shown in the client's notification list.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from clipt.boosts.types import BoostType, ContentType, get_spec
from clipt.errors import ValidationError
from clipt.records import NotificationRecord


class NotificationKind(str, Enum):
    LEVEL_UP = "level_up"
    PRESTIGE = "prestige"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    BOOST_APPLIED = "boost_applied"
    BOOST_EXTENDED = "boost_extended"
    BOOST_RESULT = "boost_result"
    CHAIN_REACTION_GROWING = "chain_reaction_growing"


# --- Payloads ---


class LevelUpPayload(BaseModel):
    old_level: int
    new_level: int
    milestone: bool = False


class PrestigePayload(BaseModel):
    prestige: int
    unlocked_theme: str | None = None


class AchievementUnlockedPayload(BaseModel):
    achievement_id: str
    name: str
    xp_reward: int
    token_reward: int


class BoostAppliedPayload(BaseModel):
    boost_id: str
    boost_type: BoostType
    content_id: str
    content_type: ContentType
    content_title: str | None = None
    cost: int


class BoostExtendedPayload(BaseModel):
    boost_id: str
    boost_type: BoostType
    expires_at: datetime
    cost: int


class BoostResultPayload(BaseModel):
    boost_id: str
    boost_type: BoostType
    content_id: str
    summary: str
    views_from_boost: int
    reached_users: int


class ChainReactionGrowingPayload(BaseModel):
    boost_id: str
    engagements: int
    chain_multiplier: float
    chain_spread: int


PAYLOAD_TYPES: dict[NotificationKind, type[BaseModel]] = {
    NotificationKind.LEVEL_UP: LevelUpPayload,
    NotificationKind.PRESTIGE: PrestigePayload,
    NotificationKind.ACHIEVEMENT_UNLOCKED: AchievementUnlockedPayload,
    NotificationKind.BOOST_APPLIED: BoostAppliedPayload,
    NotificationKind.BOOST_EXTENDED: BoostExtendedPayload,
    NotificationKind.BOOST_RESULT: BoostResultPayload,
    NotificationKind.CHAIN_REACTION_GROWING: ChainReactionGrowingPayload,
}


def _boost_applied_message(payload: BoostAppliedPayload) -> str:
    title = payload.content_title or "your content"
    if payload.boost_type == BoostType.SQUAD_BLAST:
        return f'Your Squad Blast is pushing "{title}" to all your friends for the next 24 hours.'
    if payload.boost_type == BoostType.CHAIN_REACTION:
        return (
            f'Your Chain Reaction boost is active on "{title}". '
            "Each engagement will spread it to 5 more users!"
        )
    if payload.boost_type == BoostType.KING:
        return f'Your stream "{title}" is now featured in the Top 10 for its game category with a crown badge!'
    return f'Your Stream Surge is bringing 200+ viewers to "{title}" for the next 30 minutes!'


def _render(kind: NotificationKind, payload: BaseModel) -> tuple[str, str, str | None, str | None]:
    """Return (title, message, reference_id, reference_type)."""
    if isinstance(payload, LevelUpPayload):
        if payload.milestone:
            return (
                f"Reached Level {payload.new_level}!",
                "You've earned a special milestone reward!",
                None,
                None,
            )
        return "Level Up!", f"You're now level {payload.new_level}.", None, None

    if isinstance(payload, PrestigePayload):
        message = "You are now a Clipt Legend with exclusive benefits!"
        if payload.unlocked_theme:
            message += f" New theme unlocked: {payload.unlocked_theme}."
        return f"Prestige {payload.prestige} Achieved!", message, None, None

    if isinstance(payload, AchievementUnlockedPayload):
        rewards = [f"+{payload.xp_reward} XP"]
        if payload.token_reward:
            rewards.append(f"+{payload.token_reward} tokens")
        return (
            "Achievement Unlocked",
            f"{payload.name} ({', '.join(rewards)})",
            payload.achievement_id,
            "achievement",
        )

    if isinstance(payload, BoostAppliedPayload):
        return (
            f"{get_spec(payload.boost_type).title} Applied",
            _boost_applied_message(payload),
            payload.content_id,
            payload.content_type.value,
        )

    if isinstance(payload, BoostExtendedPayload):
        return (
            "Boost Extended",
            f"Your {get_spec(payload.boost_type).title} has been extended.",
            payload.boost_id,
            "boost",
        )

    if isinstance(payload, BoostResultPayload):
        return (
            f"{get_spec(payload.boost_type).title} Results",
            payload.summary,
            payload.boost_id,
            "boost",
        )

    if isinstance(payload, ChainReactionGrowingPayload):
        return (
            "Chain Reaction Growing",
            f"Your Chain Reaction boost has reached {payload.chain_multiplier:.1f}x multiplier! "
            f"Your post has spread to {payload.chain_spread} users.",
            payload.boost_id,
            "boost",
        )

    raise ValidationError(f"No renderer for notification kind: {kind.value}")


def build_notification(
    user_id: str,
    kind: NotificationKind | str,
    payload: BaseModel,
    now: datetime,
) -> NotificationRecord:
    """Build a ready-to-persist notification. Raises ValidationError on a kind/payload mismatch."""
    try:
        kind = NotificationKind(kind)
    except ValueError as exc:
        raise ValidationError(f"Unknown notification kind: {kind}") from exc

    expected = PAYLOAD_TYPES[kind]
    if not isinstance(payload, expected):
        raise ValidationError(
            f"Payload {type(payload).__name__} does not match kind {kind.value}",
            expected=expected.__name__,
        )

    title, message, reference_id, reference_type = _render(kind, payload)
    return NotificationRecord(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=kind.value,
        title=title,
        message=message,
        reference_id=reference_id,
        reference_type=reference_type,
        read=False,
        metadata=payload.model_dump(mode="json"),
        created_at=now,
    )
