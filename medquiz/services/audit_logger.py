"""
Audit trail for generation, validation and creation events.

Fire-and-forget: recording an event never raises. Events are always logged;
when a session factory is given they are also stored in generation_logs.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from medquiz.models.models import GenerationLog

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    QUESTIONS_GENERATION = "ai_questions_generation"
    QUIZ_CREATION = "auto_quiz_creation"
    GENERATION_RETRY = "generation_retry"


class AuditStatus(str, Enum):
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class AuditEvent:
    action: str
    status: str
    user_id: Optional[str] = None
    config: Dict[str, Any] = field(default_factory=dict)
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    duration_ms: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


class AuditLogger:
    """
    Records audit events.

    Args:
        session_factory: Callable returning a SQLAlchemy session (e.g. SessionLocal).
            When None, events are only written to the log.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory

    def record_event(
        self,
        action: str,
        status: str,
        user_id: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            action=getattr(action, "value", action),
            status=getattr(status, "value", status),
            user_id=user_id,
            config=config or {},
            result=result or {},
            error=error,
            duration_ms=duration_ms,
        )

        log = logger.warning if event.status == AuditStatus.FAILED.value else logger.info
        log(f"[audit] {event.action} {event.status} user={user_id or '-'}")

        if self.session_factory is not None:
            try:
                self._store(event)
            except Exception as e:
                logger.error(f"Failed to store audit event {event.action}/{event.status}: {e}")

        return event

    def _store(self, event: AuditEvent) -> None:
        db = self.session_factory()
        try:
            db.add(GenerationLog(
                user_id=event.user_id,
                action=event.action,
                status=event.status,
                config=event.config,
                result=event.result,
                error=event.error,
                duration_ms=event.duration_ms,
                created_at=event.created_at,
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
