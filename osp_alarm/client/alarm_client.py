# osp_alarm/client/alarm_client.py
"""
Device-side alarm coordinator.
Owns at most one ClientAlarmSession and reaches it two ways:
  - the device itself detected the dispatcher call → trigger on the backend;
  - another device triggered it → discovered by polling /alarm/active.
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Optional
from osp_alarm.client.api_client import AlarmApiError
from osp_alarm.client.call_detection import CallSignal
from osp_alarm.client.device import DeviceServices
from osp_alarm.client.models import ActiveAlarm
from osp_alarm.client.session import ClientAlarmSession
from osp_alarm.config import settings
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


class AlarmClient:
    def __init__(self, api, firefighter_id: Optional[int], devices: DeviceServices = None,
                 trigger_cooldown_seconds: float = None, discovery_interval_seconds: float = None,
                 countdown_seconds: float = None, clock: Callable[[], float] = time.monotonic):
        self.api = api
        self.firefighter_id = firefighter_id
        self.devices = devices or DeviceServices()
        self.session: Optional[ClientAlarmSession] = None
        self._trigger_cooldown = (settings.TRIGGER_COOLDOWN_SECONDS
                                  if trigger_cooldown_seconds is None else trigger_cooldown_seconds)
        self._discovery_interval = (settings.ALARM_DISCOVERY_INTERVAL_SECONDS
                                    if discovery_interval_seconds is None else discovery_interval_seconds)
        self._countdown_seconds = countdown_seconds
        self._clock = clock
        self._last_trigger_at: Optional[float] = None
        self._seen_alarms: dict[int, datetime] = {}     # alarm id → expires_at
        self._discovery_task: Optional[asyncio.Task] = None

    @property
    def active_alarm(self) -> Optional[ActiveAlarm]:
        return self.session.alarm if self._has_open_session() else None

    @property
    def should_share_location(self) -> bool:
        return self._has_open_session() and self.session.should_share_location()

    def _has_open_session(self) -> bool:
        return self.session is not None and not self.session.closed

    # ── Local detection path ─────────────────────────────────────────────
    async def handle_call_signal(self, signal: CallSignal) -> Optional[ClientAlarmSession]:
        if self._has_open_session():
            logger.debug("[CALL] Alarm already active, signal ignored")
            return None
        now = self._clock()
        if self._last_trigger_at is not None and now - self._last_trigger_at < self._trigger_cooldown:
            logger.debug("[CALL] Trigger cooldown active, signal ignored")
            return None
        self._last_trigger_at = now

        try:
            data = await self.api.trigger(signal.phone_number or settings.TARGET_PHONE_NUMBER,
                                          signal.detected_at)
        except AlarmApiError as e:
            # Nobody is waiting on this call; the next poll may still pick the alarm up
            logger.error(f"[ALARM] Trigger failed: {e}")
            return None

        logger.info(f"[ALARM] Alarm {data.get('alarmId')} created "
                    f"({data.get('firefighters_count')} firefighters)")
        return await self.open_session(ActiveAlarm.from_api(data))

    # ── Discovery path ───────────────────────────────────────────────────
    async def poll_for_alarm(self) -> Optional[ClientAlarmSession]:
        self._forget_expired_alarms()
        if self._has_open_session():
            return None
        try:
            data = await self.api.get_active_alarm()
        except AlarmApiError as e:
            logger.warning(f"[POLL] Active alarm check failed: {e}")
            return None
        if not data:
            return None

        alarm = ActiveAlarm.from_api(data)
        if alarm.id in self._seen_alarms:
            return None
        logger.info(f"[POLL] Discovered alarm {alarm.id}")
        return await self.open_session(alarm)

    async def run_discovery(self):
        while True:
            try:
                await self.poll_for_alarm()
            except Exception as e:
                logger.error(f"[POLL] Discovery iteration failed: {e}", exc_info=True)
            await asyncio.sleep(self._discovery_interval)

    def _forget_expired_alarms(self, now: datetime = None):
        """The server never serves an expired alarm as active again, so its id can go."""
        now = now or datetime.utcnow()
        for alarm_id in [i for i, expires_at in self._seen_alarms.items() if expires_at <= now]:
            del self._seen_alarms[alarm_id]

    def start_discovery(self):
        if self._discovery_task is None or self._discovery_task.done():
            self._discovery_task = asyncio.create_task(self.run_discovery(), name="alarm-discovery")

    # ── Sessions ─────────────────────────────────────────────────────────
    async def open_session(self, alarm: ActiveAlarm) -> ClientAlarmSession:
        if self._has_open_session():
            if self.session.alarm.id == alarm.id:
                return self.session
            await self.session.close()

        self._seen_alarms[alarm.id] = alarm.expires_at
        session = ClientAlarmSession(
            alarm, self.api, self.firefighter_id, devices=self.devices,
            countdown_seconds=self._countdown_seconds, on_closed=self._on_session_closed,
        )
        self.session = session
        await session.start()
        return session

    def _on_session_closed(self, session: ClientAlarmSession):
        if self.session is session:
            self.session = None

    async def close(self):
        if self._discovery_task:
            self._discovery_task.cancel()
            self._discovery_task = None
        if self._has_open_session():
            await self.session.close()
