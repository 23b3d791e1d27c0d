from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings
from ..exceptions import FunctionCallError

logger = logging.getLogger(__name__)


def _function_url(name: str) -> str | None:
    if not settings.FUNCTIONS_URL:
        return None
    return f"{settings.FUNCTIONS_URL.rstrip('/')}/{name}"


def _headers() -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if settings.FUNCTIONS_KEY:
        headers["Authorization"] = f"Bearer {settings.FUNCTIONS_KEY}"
    return headers


def invoke_function(name: str, body: dict[str, Any]) -> dict[str, Any]:
    """
    Call a serverless function and return its JSON body.
    Raises FunctionCallError on missing config, transport errors, non-2xx or non-JSON replies.
    """
    url = _function_url(name)
    if not url:
        raise FunctionCallError("Functions endpoint is not configured (FUNCTIONS_URL)")

    try:
        with httpx.Client(timeout=settings.FUNCTIONS_TIMEOUT) as client:
            resp = client.post(url, json=body, headers=_headers())
            resp.raise_for_status()
            data = resp.json()
    except httpx.HTTPError as e:
        logger.warning("function %s failed: %s", name, e)
        raise FunctionCallError(f"Function {name} failed") from e
    except ValueError as e:
        logger.warning("function %s returned non-JSON body", name)
        raise FunctionCallError(f"Function {name} returned an invalid response") from e

    if not isinstance(data, dict):
        raise FunctionCallError(f"Function {name} returned an invalid response")
    return data


async def _post_quietly(name: str, body: dict[str, Any], what: str) -> None:
    # fire-and-forget: failures are logged, never raised
    url = _function_url(name)
    if not url:
        logger.info("%s skipped (no FUNCTIONS_URL)", what)
        return
    async with httpx.AsyncClient(timeout=settings.FUNCTIONS_TIMEOUT) as c:
        try:
            resp = await c.post(url, json=body, headers=_headers())
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("%s failed: %s", what, e)


async def notify_admin(user_data: dict, user_type: str = "customer") -> None:
    """
    Fire-and-forget signup notification for admins.
    Stays quiet when the functions endpoint is not configured.
    """
    await _post_quietly(
        "send-admin-notification",
        {"userData": user_data, "userType": user_type},
        f"admin notification for {user_data.get('email')}",
    )


async def send_password_reset(email: str, link: str) -> None:
    """Email the reset link through the mail function."""
    await _post_quietly("send-password-reset", {"email": email, "resetLink": link}, "password reset email")
