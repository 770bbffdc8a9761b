# osp_alarm/services/roster_service.py
"""
Read-only access to the firefighter roster and training records.
Seeding uses the phone-number filter; the stats breakdown uses the
qualification validity clause (validity_until NULL or not yet passed).
"""

from datetime import date
from sqlalchemy import exists, or_
from sqlalchemy.orm import Session
from osp_alarm.models.firefighter import Firefighter, Training, FirefighterTraining


def list_reachable_firefighters(db: Session) -> list[Firefighter]:
    """Firefighters with a registered phone number, i.e. the ones an alarm can reach."""
    return (db.query(Firefighter)
            .filter(Firefighter.phone_number.isnot(None))
            .order_by(Firefighter.id)
            .all())


def valid_qualification_exists(firefighter_id, training_name: str, today: date):
    """
    EXISTS clause for a still-valid qualification.
    firefighter_id may be a column (correlated subquery) or a plain id.
    """
    return exists().where(
        FirefighterTraining.firefighter_id == firefighter_id,
        FirefighterTraining.training_id == Training.id,
        Training.name == training_name,
        or_(FirefighterTraining.validity_until.is_(None),
            FirefighterTraining.validity_until >= today),
    )


def has_valid_qualification(db: Session, firefighter_id: int, training_name: str,
                            today: date = None) -> bool:
    today = today or date.today()
    return bool(db.query(valid_qualification_exists(firefighter_id, training_name, today)).scalar())
