# osp_alarm/enums.py
"""Value sets shared by the backend models and the device client."""

import enum


class ResponseType(str, enum.Enum):
    TAK = "TAK"     # confirm
    NIE = "NIE"     # decline (also the seeded default)


class AlarmStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
