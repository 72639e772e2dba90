"""Session and CSRF cookie helpers.

Both cookies share the same attributes; only the session cookie is
``httponly`` so browser code can read the CSRF value back into a header.
"""

from __future__ import annotations

from fastapi import Response

from eventpass.core.settings import Settings


def _cookie_options(settings: Settings) -> dict[str, object]:
    return {
        "path": "/",
        "samesite": "lax",
        "secure": settings.is_production,
    }


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        **_cookie_options(settings),  # type: ignore[arg-type]
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        **_cookie_options(settings),  # type: ignore[arg-type]
    )


def set_csrf_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.csrf_cookie_name,
        token,
        max_age=settings.csrf_cookie_max_age_seconds,
        httponly=False,
        **_cookie_options(settings),  # type: ignore[arg-type]
    )
