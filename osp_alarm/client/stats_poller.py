# osp_alarm/client/stats_poller.py
"""
Periodic re-read of alarm response stats for the banner and map filter.
Each refresh replaces the snapshot; a failed refresh keeps the last one.
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional
from osp_alarm.client.api_client import AlarmApiError
from osp_alarm.client.models import StatsSnapshot
from osp_alarm.config import settings
from osp_alarm.enums import ResponseType
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


class StatsPollingClient:
    def __init__(self, api, interval_seconds: float = None,
                 on_update: Optional[Callable[[StatsSnapshot], None]] = None):
        self.api = api
        self.interval = settings.STATS_POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.on_update = on_update
        self.alarm_id: Optional[int] = None
        self.snapshot: Optional[StatsSnapshot] = None
        self.last_updated: Optional[datetime] = None
        self.loading = False
        self._task: Optional[asyncio.Task] = None

    async def refresh(self, alarm_id: int = None) -> Optional[StatsSnapshot]:
        alarm_id = alarm_id or self.alarm_id
        if alarm_id is None:
            return None
        self.loading = True
        try:
            data = await self.api.get_stats(alarm_id)
        except AlarmApiError as e:
            logger.warning(f"[STATS] Refresh failed for alarm {alarm_id}: {e}")
            return self.snapshot
        finally:
            self.loading = False

        self.snapshot = StatsSnapshot.from_api(data)
        self.last_updated = datetime.utcnow()
        if self.on_update:
            self.on_update(self.snapshot)
        return self.snapshot

    async def _run(self, alarm_id: int):
        while True:
            try:
                await self.refresh(alarm_id)
            except Exception as e:
                logger.error(f"[STATS] Poll iteration for alarm {alarm_id} failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    def start(self, alarm_id: int):
        if self.alarm_id == alarm_id and self._task and not self._task.done():
            return
        self.stop()
        self.alarm_id = alarm_id
        self._task = asyncio.create_task(self._run(alarm_id), name=f"stats-{alarm_id}")

    def stop(self):
        if self._task:
            self._task.cancel()
            self._task = None
        self.alarm_id = None
        self.snapshot = None
        self.last_updated = None

    @property
    def confirmed_firefighter_ids(self) -> set:
        if not self.snapshot:
            return set()
        return {r.firefighter_id for r in self.snapshot.responses if r.response_type is ResponseType.TAK}

    def qualified_confirmed_ids(self, qualification: str) -> set:
        """Confirmed responders currently holding the given qualification (e.g. 'driver_c')."""
        if not self.snapshot:
            return set()
        return {r.firefighter_id for r in self.snapshot.responses
                if r.response_type is ResponseType.TAK and r.qualifications.get(qualification)}
