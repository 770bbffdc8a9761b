# osp_alarm/models/alarm_response.py
"""
Alarm responses table: one row per (alarm, firefighter) pair.
Seeded with NIE at alarm creation, later overwritten by the firefighter's
own decision. Rows are never inserted by the respond flow.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from osp_alarm.database import Base
from osp_alarm.enums import ResponseType


class AlarmResponse(Base):
    __tablename__ = "alarm_responses"
    __table_args__ = (
        UniqueConstraint("alarm_id", "firefighter_id", name="uq_alarm_responses_alarm_firefighter"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    alarm_id = Column(Integer, ForeignKey("alarms.id"), nullable=False, index=True)
    firefighter_id = Column(Integer, ForeignKey("firefighters.id"), nullable=False, index=True)
    # Plain text so that ORDER BY response_type DESC puts TAK before NIE
    response_type = Column(String(3), default=ResponseType.NIE.value, nullable=False)
    responded_at = Column(DateTime)

    alarm = relationship("Alarm", back_populates="responses")

    def __repr__(self):
        return f"<AlarmResponse alarm={self.alarm_id} ff={self.firefighter_id} {self.response_type}>"
