# osp_alarm/errors.py
"""Domain errors raised by the alarm services and translated to HTTP by the routers."""


class AlarmError(Exception):
    """Alarm response related errors."""
    pass


class ValidationError(AlarmError):
    """Missing or malformed request field. Maps to 400."""
    pass


class NotFoundError(AlarmError):
    """Referenced alarm or seeded response row does not exist. Maps to 404."""
    pass


class AlarmClosedError(AlarmError):
    """Alarm is closed or past its response window. Maps to 409."""
    pass


class StorageError(AlarmError):
    """Underlying persistence failure. Maps to a generic 500."""
    pass
