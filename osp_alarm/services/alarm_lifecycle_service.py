# osp_alarm/services/alarm_lifecycle_service.py
"""
Alarm lifecycle: discovery of the currently open alarm (polled by every
device, not only the one that detected the call) and explicit closing.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from osp_alarm.errors import NotFoundError, StorageError
from osp_alarm.models.alarm import Alarm, AlarmStatus
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


def get_active_alarm(db: Session, now: datetime = None) -> Optional[Alarm]:
    """Most recent alarm that has started and is still inside its response window."""
    now = now or datetime.utcnow()
    try:
        return db.query(Alarm).filter(
            Alarm.status == AlarmStatus.OPEN.value,
            Alarm.end_time.is_(None),
            Alarm.alarm_time <= now,
            Alarm.expires_at > now,
        ).order_by(Alarm.alarm_time.desc(), Alarm.id.desc()).first()
    except SQLAlchemyError as e:
        logger.error(f"[ALARM] Active alarm lookup failed: {e}", exc_info=True)
        raise StorageError("Database error") from e


def close_alarm(db: Session, alarm_id: int) -> Alarm:
    """Mark an alarm CLOSED; further responses are rejected."""
    try:
        alarm = db.query(Alarm).filter(Alarm.id == alarm_id).first()
        if not alarm:
            raise NotFoundError("Alarm not found")
        alarm.status = AlarmStatus.CLOSED.value
        if alarm.end_time is None:
            alarm.end_time = datetime.utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ALARM] Failed to close alarm {alarm_id}: {e}", exc_info=True)
        raise StorageError("Database error") from e

    logger.info(f"[ALARM] Alarm {alarm_id} closed")
    return alarm
