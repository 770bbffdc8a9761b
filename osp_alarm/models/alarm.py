# osp_alarm/models/alarm.py
"""
Alarms table: one row per dispatch incident detected on a dispatcher call.
Created by alarm_trigger_service; end_time and status may later be set by
close_alarm or by roster/report administration.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from osp_alarm.database import Base
from osp_alarm.enums import AlarmStatus


class Alarm(Base):
    __tablename__ = "alarms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alarm_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)
    call_phone_number = Column(String(32), nullable=False, index=True)
    status = Column(String(10), default=AlarmStatus.OPEN.value, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    responses = relationship("AlarmResponse", back_populates="alarm")

    def is_open(self, now: datetime = None) -> bool:
        """Respondable while OPEN, not ended and inside the response window."""
        now = now or datetime.utcnow()
        return (self.status == AlarmStatus.OPEN.value
                and self.end_time is None
                and now < self.expires_at)

    def __repr__(self):
        return f"<Alarm {self.id} number={self.call_phone_number} status={self.status}>"
