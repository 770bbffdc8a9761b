# osp_alarm/services/alarm_trigger_service.py
"""
Alarm creation from a detected dispatcher call.

The alarm row and one NIE seed row per reachable firefighter are written
in a single transaction, so a stats reader never sees an alarm without
its seed set. A firefighter whose device never answers stays NIE.

Repeated triggers for the same number within ALARM_DEDUP_WINDOW_SECONDS
of each other resolve to the alarm that already exists, as long as that
alarm is still open. Triggers for one number are serialised on its
alarm_call_locks row, so concurrent detections of one call cannot both insert.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from osp_alarm.config import settings
from osp_alarm.errors import ValidationError, StorageError
from osp_alarm.models.alarm import Alarm, AlarmStatus
from osp_alarm.models.alarm_call_lock import AlarmCallLock
from osp_alarm.models.alarm_response import AlarmResponse, ResponseType
from osp_alarm.services.roster_service import list_reachable_firefighters
from osp_alarm.utils.logger import get_logger
from osp_alarm.utils.time_utils import to_naive_utc

logger = get_logger(__name__)


@dataclass
class TriggerResult:
    alarm_id: int
    alarm_time: datetime
    call_phone_number: str
    firefighters_count: int
    expires_at: datetime
    deduplicated: bool = False

    def to_dict(self) -> dict:
        return {
            "alarmId": self.alarm_id,
            "alarm_time": self.alarm_time,
            "call_phone_number": self.call_phone_number,
            "firefighters_count": self.firefighters_count,
            "expires_at": self.expires_at,
            "deduplicated": self.deduplicated,
        }


def _find_duplicate(db: Session, call_phone_number: str, alarm_time: datetime):
    window = settings.ALARM_DEDUP_WINDOW_SECONDS
    if window <= 0:
        return None
    delta = timedelta(seconds=window)
    return db.query(Alarm).filter(
        Alarm.call_phone_number == call_phone_number,
        Alarm.status == AlarmStatus.OPEN.value,
        Alarm.end_time.is_(None),
        Alarm.alarm_time >= alarm_time - delta,
        Alarm.alarm_time <= alarm_time + delta,
    ).order_by(Alarm.alarm_time.desc()).first()


def _lock_call_number(db: Session, call_phone_number: str):
    """
    Take the per-number trigger lock; held until the caller commits or rolls back.
    An UPDATE rather than SELECT ... FOR UPDATE, so SQLite takes its write lock too.
    """
    lock_filter = AlarmCallLock.call_phone_number == call_phone_number
    if db.query(AlarmCallLock).filter(lock_filter).first() is None:
        try:
            db.add(AlarmCallLock(call_phone_number=call_phone_number, locked_at=datetime.utcnow()))
            db.commit()
        except IntegrityError:
            db.rollback()  # a concurrent trigger created it first
    db.query(AlarmCallLock).filter(lock_filter).update(
        {AlarmCallLock.locked_at: datetime.utcnow()}, synchronize_session=False)


def trigger_alarm(db: Session, call_phone_number, alarm_time: datetime = None) -> TriggerResult:
    """Create an alarm and seed a pending NIE response for every reachable firefighter."""
    if not call_phone_number or not str(call_phone_number).strip():
        raise ValidationError("call_phone_number is required")
    call_phone_number = str(call_phone_number).strip()
    alarm_time = to_naive_utc(alarm_time) if alarm_time else datetime.utcnow()

    try:
        _lock_call_number(db, call_phone_number)
        existing = _find_duplicate(db, call_phone_number, alarm_time)
        if existing:
            seeded = db.query(func.count(AlarmResponse.id)).filter(
                AlarmResponse.alarm_id == existing.id).scalar()
            result = TriggerResult(existing.id, existing.alarm_time, existing.call_phone_number,
                                   seeded, existing.expires_at, deduplicated=True)
            db.commit()  # releases the number lock
            logger.info(f"[ALARM] Duplicate trigger for {call_phone_number} → alarm {result.alarm_id}")
            return result

        now = datetime.utcnow()
        alarm = Alarm(
            alarm_time=alarm_time,
            call_phone_number=call_phone_number,
            status=AlarmStatus.OPEN.value,
            expires_at=alarm_time + timedelta(seconds=settings.ALARM_RESPONSE_WINDOW_SECONDS),
            created_at=now,
            updated_at=now,
        )
        db.add(alarm)
        db.flush()  # assigns alarm.id inside the open transaction

        firefighters = list_reachable_firefighters(db)
        db.add_all([
            AlarmResponse(alarm_id=alarm.id, firefighter_id=ff.id,
                          response_type=ResponseType.NIE.value, responded_at=None)
            for ff in firefighters
        ])
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[ALARM] Failed to create alarm for {call_phone_number}: {e}", exc_info=True)
        raise StorageError("Database error") from e

    logger.warning(f"[ALARM] 🚨 Alarm {alarm.id} from {call_phone_number} — "
                   f"{len(firefighters)} firefighters seeded")
    return TriggerResult(alarm.id, alarm.alarm_time, alarm.call_phone_number,
                         len(firefighters), alarm.expires_at)
