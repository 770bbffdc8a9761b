# osp_alarm/models/alarm_call_lock.py
"""
One row per dispatcher number that has ever triggered an alarm.
alarm_trigger_service updates the row at the start of its transaction, so
two near-simultaneous triggers for the same number run one after the other
and the second one sees the alarm the first one created.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime
from osp_alarm.database import Base


class AlarmCallLock(Base):
    __tablename__ = "alarm_call_locks"

    call_phone_number = Column(String(32), primary_key=True)
    locked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<AlarmCallLock {self.call_phone_number} at={self.locked_at}>"
