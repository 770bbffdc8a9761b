# osp_alarm/services/stats_service.py
"""
Alarm response statistics.
Recomputed from alarm_responses + roster on every call, never cached:
rows keep changing while the alarm is open.

Ordering: TAK before NIE (response_type DESC), then earliest responded_at,
with never-answered rows (NULL) first inside each group.
"""

from dataclasses import dataclass, field
from datetime import date
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from osp_alarm.config import settings
from osp_alarm.errors import StorageError
from osp_alarm.models.alarm_response import AlarmResponse, ResponseType
from osp_alarm.models.firefighter import Firefighter
from osp_alarm.services.roster_service import valid_qualification_exists
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class AlarmResponseStats:
    summary: dict = field(default_factory=lambda: {"total": 0, "confirmed": 0, "not_confirmed": 0})
    training_summary: dict = field(default_factory=dict)
    responses: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "trainingSummary": self.training_summary,
            "responses": self.responses,
        }


def get_alarm_stats(db: Session, alarm_id: int, today: date = None) -> AlarmResponseStats:
    """Summary, per-qualification TAK counts and the ordered response list for one alarm."""
    today = today or date.today()
    qualifications = settings.TRACKED_QUALIFICATIONS
    flag_columns = [
        valid_qualification_exists(AlarmResponse.firefighter_id, training_name, today).label(f"has_{key}")
        for key, training_name in qualifications.items()
    ]

    try:
        rows = (
            db.query(
                AlarmResponse.firefighter_id,
                Firefighter.name,
                Firefighter.surname,
                AlarmResponse.response_type,
                AlarmResponse.responded_at,
                *flag_columns,
            )
            .outerjoin(Firefighter, AlarmResponse.firefighter_id == Firefighter.id)
            .filter(AlarmResponse.alarm_id == alarm_id)
            .order_by(
                AlarmResponse.response_type.desc(),
                AlarmResponse.responded_at.asc().nulls_first(),
                AlarmResponse.firefighter_id.asc(),
            )
            .all()
        )
    except SQLAlchemyError as e:
        logger.error(f"[STATS] Query failed for alarm {alarm_id}: {e}", exc_info=True)
        raise StorageError("Database error") from e

    responses = []
    for row in rows:
        mapping = row._mapping
        entry = {
            "firefighter_id": mapping["firefighter_id"],
            "name": mapping["name"],
            "surname": mapping["surname"],
            "response_type": mapping["response_type"],
            "responded_at": mapping["responded_at"],
        }
        for key in qualifications:
            entry[f"has_{key}"] = bool(mapping[f"has_{key}"])
        responses.append(entry)

    confirmed = [r for r in responses if r["response_type"] == ResponseType.TAK.value]
    stats = AlarmResponseStats(
        summary={
            "total": len(responses),
            "confirmed": len(confirmed),
            "not_confirmed": sum(1 for r in responses if r["response_type"] == ResponseType.NIE.value),
        },
        training_summary={key: sum(1 for r in confirmed if r[f"has_{key}"]) for key in qualifications},
        responses=responses,
    )
    logger.debug(f"[STATS] Alarm {alarm_id}: {stats.summary}")
    return stats
