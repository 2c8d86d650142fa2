"""
Audit Logging

Records who did what to which governance object. Entries are written in
their own session after the governance transaction committed, and a failing
audit write is logged and swallowed so it never fails the mutation.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from boardbook.core.config import settings
from boardbook.core.database import Base, async_session_maker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogEntry(Base):
    """One audited mutation."""

    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(50))
    object_type: Mapped[str] = mapped_column(String(100), index=True)
    object_id: Mapped[str] = mapped_column(String(100), index=True)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    extra: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class AuditLogger:
    """Writes audit entries through a dedicated session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        enabled: bool | None = None,
    ) -> None:
        self.session_factory = session_factory or async_session_maker
        self.enabled = settings.audit_enabled if enabled is None else enabled

    async def record_audit(
        self,
        action: str,
        object_type: str,
        object_id: Any,
        actor_id: uuid.UUID | None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLogEntry | None:
        """
        Persist an audit entry.

        Returns the entry, or None when auditing is disabled or the write
        failed.
        """
        if not self.enabled:
            return None

        entry = AuditLogEntry(
            action=action,
            object_type=object_type,
            object_id=str(object_id),
            actor_id=actor_id,
            extra=_jsonable(metadata or {}),
        )
        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception:
            logger.exception(
                "Audit write failed for %s %s %s by %s",
                action,
                object_type,
                object_id,
                actor_id,
            )
            return None

        logger.debug("Audited %s %s %s by %s", action, object_type, object_id, actor_id)
        return entry


def _jsonable(metadata: dict[str, Any]) -> dict[str, Any]:
    """Stringify values the JSON column cannot store as-is."""
    result: dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            result[key] = value
        else:
            result[key] = str(value)
    return result


audit_logger = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Dependency for getting the audit logger."""
    return audit_logger
