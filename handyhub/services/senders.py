"""Best-effort email and SMS side channels.

Both senders talk to an HTTP relay configured in settings and report
success as a bool; they never raise. An unconfigured channel logs and
returns False.
"""

from __future__ import annotations

import logging

import httpx

from handyhub.config import settings

logger = logging.getLogger("handyhub.senders")


async def _post(url: str, api_key: str | None, payload: dict) -> bool:
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    async with httpx.AsyncClient(timeout=settings.sender_timeout_seconds) as client:
        resp = await client.post(url, json=payload, headers=headers)
    if resp.status_code >= 400:
        logger.warning("Relay %s answered %s", url, resp.status_code)
        return False
    return True


async def send_email(to: str | None, subject: str, body: str) -> bool:
    if not to:
        logger.warning("send_email: missing recipient")
        return False
    if not settings.email_api_url:
        logger.info("Email relay not configured; skipped %r to %s", subject, to)
        return False
    try:
        ok = await _post(
            settings.email_api_url,
            settings.email_api_key,
            {"from": settings.email_from, "to": to, "subject": subject, "text": body},
        )
    except Exception:
        logger.exception("send_email to %s failed", to)
        return False
    if ok:
        logger.info("Email sent to %s | subject=%s", to, subject)
    return ok


async def send_sms(to: str | None, message: str) -> bool:
    if not to:
        return False
    if not settings.sms_api_url:
        logger.info("SMS gateway not configured; skipped message to %s", to)
        return False
    try:
        ok = await _post(settings.sms_api_url, settings.sms_api_key, {"to": to, "message": message})
    except Exception:
        logger.exception("send_sms to %s failed", to)
        return False
    if ok:
        logger.info("SMS sent to %s", to)
    return ok
