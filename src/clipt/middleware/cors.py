"""CORS for the Clipt web and mobile web clients."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clipt.config import Settings
from clipt.middleware.request_id import REQUEST_ID_HEADER


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Register CORS for the configured origins; nothing when none are configured.

    Credentials are allowed only for explicit origins, never with ``*``.
    """
    if not settings.cors_origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
