# osp_alarm/services/response_service.py
"""
Records one firefighter's TAK/NIE decision for an alarm.
Update-only: the row must have been seeded at trigger time. The last
write wins, so a firefighter may change their mind while the alarm is open.
"""

from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from osp_alarm.errors import ValidationError, NotFoundError, AlarmClosedError, StorageError
from osp_alarm.models.alarm import Alarm
from osp_alarm.models.alarm_response import AlarmResponse, ResponseType
from osp_alarm.services.stats_service import get_alarm_stats
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)

VALID_RESPONSE_TYPES = {t.value for t in ResponseType}


def record_response(db: Session, alarm_id: int, firefighter_id, response_type) -> dict:
    """Overwrite the seeded response and return the recomputed stats snapshot."""
    if firefighter_id is None or response_type is None or response_type == "":
        raise ValidationError("firefighter_id and response_type are required")
    if response_type not in VALID_RESPONSE_TYPES:
        raise ValidationError("response_type must be TAK or NIE")

    try:
        alarm = db.query(Alarm).filter(Alarm.id == alarm_id).first()
        if not alarm:
            raise NotFoundError("Alarm not found")
        if not alarm.is_open():
            logger.info(f"[RESPONSE] Late response for closed alarm {alarm_id} from ff={firefighter_id}")
            raise AlarmClosedError("Alarm is closed")

        updated = db.query(AlarmResponse).filter(
            AlarmResponse.alarm_id == alarm_id,
            AlarmResponse.firefighter_id == firefighter_id,
        ).update({
            AlarmResponse.response_type: response_type,
            AlarmResponse.responded_at: datetime.utcnow(),
        }, synchronize_session=False)
        if updated == 0:
            db.rollback()
            raise NotFoundError("Response record not found")
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[RESPONSE] Failed to record response for alarm {alarm_id}: {e}", exc_info=True)
        raise StorageError("Database error") from e

    logger.info(f"[RESPONSE] Alarm {alarm_id}: ff={firefighter_id} → {response_type}")
    stats = get_alarm_stats(db, alarm_id)
    return {
        "success": True,
        "firefighter_id": firefighter_id,
        "response_type": response_type,
        **stats.to_dict(),
        "message": "Response recorded successfully",
    }
