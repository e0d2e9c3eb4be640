"""Dependency injection for FastAPI endpoints"""

import base64
import binascii
import hmac
from datetime import datetime
from typing import Optional

from fastapi import Header, HTTPException, Request

from booking_gateway.config import settings
from booking_gateway.infrastructure.clients.conflict_webhook import ConflictWebhookClient
from booking_gateway.utils.date_utils import now_ph


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_now() -> datetime:
    """Current time in Philippine time; overridden in tests to pin the clock"""
    return now_ph()


def get_conflict_webhook_client() -> ConflictWebhookClient:
    """Provide conflict webhook client instance"""
    return ConflictWebhookClient()


def _safe_equal(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


def _bearer_authorized(auth_header: str) -> bool:
    if not settings.cron_secret:
        return False
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token:
        return False
    return _safe_equal(token, settings.cron_secret)


def _basic_authorized(auth_header: str) -> bool:
    scheme, _, encoded = auth_header.partition(" ")
    if scheme != "Basic" or not encoded or not settings.cron_password:
        return False
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False

    user, separator, password = decoded.partition(":")
    if not separator:
        return False
    return _safe_equal(user, settings.cron_user) and _safe_equal(password, settings.cron_password)


def require_cron_auth(authorization: Optional[str] = Header(default=None)) -> None:
    """Allow scheduled jobs authenticated with the cron secret or basic credentials"""
    if authorization and (_bearer_authorized(authorization) or _basic_authorized(authorization)):
        return
    raise HTTPException(
        status_code=401,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Basic realm='Secure Area'"},
    )
