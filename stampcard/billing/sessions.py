"""
Super-admin dashboard session.

Staff users open a time-boxed admin session before the billing dashboard
endpoints answer. The session is stored in the Django session of the
request that started it and expires after BILLING_ADMIN_SESSION_TTL_HOURS.
Expiry is a pure function of (issued_at, now, ttl) so it can be checked
anywhere without touching request state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from stampcard.billing.constants import DEFAULT_ADMIN_SESSION_TTL_HOURS

logger = logging.getLogger(__name__)

SESSION_KEY = "billing_admin_session"


def get_session_ttl() -> timedelta:
    hours = getattr(
        settings,
        "BILLING_ADMIN_SESSION_TTL_HOURS",
        DEFAULT_ADMIN_SESSION_TTL_HOURS,
    )
    return timedelta(hours=hours)


def is_session_expired(issued_at: datetime, now: datetime, ttl: timedelta) -> bool:
    """A session issued at ``issued_at`` is expired once ``ttl`` has passed."""
    return now - issued_at > ttl


@dataclass(frozen=True)
class AdminSession:
    user_id: str
    issued_at: datetime

    def expires_at(self, ttl: timedelta | None = None) -> datetime:
        return self.issued_at + (ttl or get_session_ttl())

    def is_expired(self, now: datetime | None = None, ttl: timedelta | None = None) -> bool:
        return is_session_expired(
            self.issued_at,
            now or timezone.now(),
            ttl or get_session_ttl(),
        )

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at().isoformat(),
        }

    @classmethod
    def start(cls, request) -> AdminSession:
        session = cls(user_id=str(request.user.pk), issued_at=timezone.now())
        request.session[SESSION_KEY] = {
            "user_id": session.user_id,
            "issued_at": session.issued_at.isoformat(),
        }
        logger.info("Admin session started for user=%s", session.user_id)
        return session

    @classmethod
    def load(cls, request) -> AdminSession | None:
        """
        Return the request's live admin session.

        Expired sessions, and sessions started by a different user, are
        removed and None is returned.
        """
        raw = request.session.get(SESSION_KEY)
        if not raw:
            return None

        try:
            session = cls(
                user_id=str(raw["user_id"]),
                issued_at=datetime.fromisoformat(raw["issued_at"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed admin session")
            cls.invalidate(request)
            return None

        if session.user_id != str(request.user.pk) or session.is_expired():
            logger.info("Admin session for user=%s expired", session.user_id)
            cls.invalidate(request)
            return None
        return session

    @classmethod
    def invalidate(cls, request) -> None:
        request.session.pop(SESSION_KEY, None)
