# OSP Alarm Response — Database Models
# Import all models here for SQLAlchemy discovery

from osp_alarm.models.firefighter import Firefighter, Training, FirefighterTraining  # noqa
from osp_alarm.models.alarm import Alarm, AlarmStatus                               # noqa
from osp_alarm.models.alarm_response import AlarmResponse, ResponseType             # noqa
from osp_alarm.models.alarm_call_lock import AlarmCallLock                         # noqa
