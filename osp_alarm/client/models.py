# osp_alarm/client/models.py
"""
Device-local value types: the alarm a session is tracking and the
stats snapshot read back from the backend.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from osp_alarm.config import settings
from osp_alarm.enums import ResponseType
from osp_alarm.utils.time_utils import parse_instant


class SessionStatus(str, enum.Enum):
    AWAITING_RESPONSE = "awaiting_response"
    RESPONDED = "responded"


@dataclass
class ActiveAlarm:
    id: int
    call_number: Optional[str]
    started_at: datetime            # naive UTC, alarm start
    expires_at: datetime            # started_at + response window
    status: SessionStatus = SessionStatus.AWAITING_RESPONSE
    last_response: Optional[ResponseType] = None

    @classmethod
    def from_api(cls, data: dict) -> "ActiveAlarm":
        """Build from a trigger result or an /alarm/active payload."""
        alarm_id = data.get("alarmId", data.get("id"))
        started_at = parse_instant(data.get("alarm_time")) or datetime.utcnow()
        expires_at = parse_instant(data.get("expires_at")) or (
            started_at + timedelta(seconds=settings.ALARM_RESPONSE_WINDOW_SECONDS))
        return cls(
            id=int(alarm_id),
            call_number=data.get("call_phone_number"),
            started_at=started_at,
            expires_at=expires_at,
        )

    def is_expired(self, now: datetime = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at


@dataclass
class AlarmSummary:
    total: int = 0
    confirmed: int = 0
    not_confirmed: int = 0


@dataclass
class ResponderStatus:
    firefighter_id: int
    name: Optional[str]
    surname: Optional[str]
    response_type: ResponseType
    responded_at: Optional[datetime]
    qualifications: dict = field(default_factory=dict)   # key → currently valid


@dataclass
class StatsSnapshot:
    alarm_id: int
    summary: AlarmSummary
    training_summary: dict
    responses: list

    @classmethod
    def from_api(cls, data: dict) -> "StatsSnapshot":
        responses = []
        for r in data.get("responses", []):
            responses.append(ResponderStatus(
                firefighter_id=r["firefighter_id"],
                name=r.get("name"),
                surname=r.get("surname"),
                response_type=ResponseType(r["response_type"]),
                responded_at=parse_instant(r.get("responded_at")),
                qualifications={k[len("has_"):]: bool(v) for k, v in r.items() if k.startswith("has_")},
            ))
        summary = data.get("summary") or {}
        return cls(
            alarm_id=data.get("alarmId"),
            summary=AlarmSummary(
                total=summary.get("total", 0),
                confirmed=summary.get("confirmed", 0),
                not_confirmed=summary.get("not_confirmed", 0),
            ),
            training_summary=dict(data.get("trainingSummary") or {}),
            responses=responses,
        )
