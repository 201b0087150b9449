"""Outbound message requests.

The scheduler decides whether a message should go out; delivery belongs to
the gateway. Every request leaves a MessageLog row, delivered or not, so the
per-day checks stay truthful.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Protocol

import httpx
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from coach.config import get_settings
from coach.db import session_scope
from coach.models import MessageLog

logger = logging.getLogger(__name__)


class MessageCategory(str, Enum):
    CHECK_IN = "CHECK_IN"
    WORKOUT_MISSED = "WORKOUT_MISSED"
    WORKOUT_COMPLETED = "WORKOUT_COMPLETED"
    RECOVERY_TIP = "RECOVERY_TIP"
    ESCALATION = "ESCALATION"
    MOTIVATION = "MOTIVATION"
    SYSTEM = "SYSTEM"


class Channel(str, Enum):
    SMS = "SMS"
    EMAIL = "EMAIL"


class MessageGateway(Protocol):
    def request_message(self, athlete_id: int, category: str, channel: str, context: dict[str, Any]) -> str: ...


class LogOnlyGateway:
    """Records the request in the log stream and returns a local id."""

    def request_message(self, athlete_id: int, category: str, channel: str, context: dict[str, Any]) -> str:
        message_id = f"local-{uuid.uuid4().hex[:12]}"
        logger.info(
            "Message requested",
            extra={
                "ctx_athlete_id": athlete_id,
                "ctx_category": category,
                "ctx_channel": channel,
                "ctx_message_id": message_id,
            },
        )
        return message_id


class HttpMessageGateway:
    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def request_message(self, athlete_id: int, category: str, channel: str, context: dict[str, Any]) -> str:
        payload = {"athlete_id": athlete_id, "category": category, "channel": channel, "context": context}
        if self._client is not None:
            resp = self._client.post(self.url, json=payload, timeout=self.timeout)
        else:
            resp = httpx.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        body = resp.json() if resp.content else {}
        return str(body.get("id") or body.get("message_id") or "")


def default_gateway() -> MessageGateway:
    settings = get_settings()
    if settings.notify_url:
        return HttpMessageGateway(settings.notify_url, timeout=settings.notify_timeout_seconds)
    return LogOnlyGateway()


def already_sent(s: Session, athlete_id: int, category: MessageCategory | str, day: dt.date) -> bool:
    return (
        s.execute(
            select(MessageLog.id).where(
                MessageLog.athlete_id == athlete_id,
                MessageLog.category == MessageCategory(category).value,
                MessageLog.sent_on == day,
            )
        ).first()
        is not None
    )


def sent_count(s: Session, athlete_id: int, day: dt.date) -> int:
    return s.execute(
        select(func.count(MessageLog.id)).where(MessageLog.athlete_id == athlete_id, MessageLog.sent_on == day)
    ).scalar_one()


class Notifier:
    def __init__(self, gateway: Optional[MessageGateway] = None):
        self.gateway = gateway or default_gateway()

    def request(
        self,
        athlete_id: int,
        category: MessageCategory | str,
        channel: Channel | str,
        day: dt.date,
        context: Optional[dict[str, Any]] = None,
        template_id: Optional[str] = None,
    ) -> int:
        """Request one message and return its MessageLog id.

        Delivery errors are recorded on the row and logged, never raised.
        """
        category = MessageCategory(category)
        channel = Channel(channel)
        context = dict(context or {})
        with session_scope() as s:
            row = MessageLog(
                athlete_id=athlete_id,
                category=category.value,
                channel=channel.value,
                template_id=template_id or f"{category.value.lower()}-default",
                context=context,
                sent_on=day,
            )
            s.add(row)
            s.flush()
            try:
                row.external_id = self.gateway.request_message(athlete_id, category.value, channel.value, context)
            except Exception as exc:
                row.failed_at = dt.datetime.utcnow()
                row.failure_reason = str(exc)[:255]
                logger.warning(
                    "Message delivery failed",
                    extra={"ctx_athlete_id": athlete_id, "ctx_category": category.value, "ctx_error": str(exc)},
                )
            return row.id

    def request_once(
        self,
        athlete_id: int,
        category: MessageCategory | str,
        channel: Channel | str,
        day: dt.date,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[int]:
        """Request the message unless one of the same category already went out that day."""
        with session_scope() as s:
            if already_sent(s, athlete_id, category, day):
                return None
        return self.request(athlete_id, category, channel, day, context)
