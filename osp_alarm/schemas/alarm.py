# osp_alarm/schemas/alarm.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AlarmTriggerIn(BaseModel):
    call_phone_number: Optional[str] = None
    alarm_time: Optional[datetime] = None


class AlarmRespondIn(BaseModel):
    firefighter_id: Optional[int] = None
    response_type: Optional[str] = None


class AlarmOut(BaseModel):
    id: int
    alarm_time: datetime
    end_time: Optional[datetime]
    call_phone_number: str
    status: str
    expires_at: datetime

    class Config:
        from_attributes = True


class ActiveAlarmOut(BaseModel):
    alarm: Optional[AlarmOut] = None
