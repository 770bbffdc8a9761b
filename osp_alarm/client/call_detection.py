# osp_alarm/client/call_detection.py
"""
Turns raw telephony state events into one alarm signal per physical call.

The OS reports RINGING / OFFHOOK / IDLE transitions, often more than once
for the same change. Two stages keep one dispatcher call from producing
several alarms:
  1. IDLE events within CALL_COOLDOWN_SECONDS of the last accepted IDLE
     are dropped as duplicates.
  2. An accepted IDLE (after a RINGING from the tracked number) arms a
     CALL_SETTLE_SECONDS timer; a new RINGING before it fires cancels it,
     since the dispatcher is redialling. When it fires, exactly one
     CallSignal is emitted and the detector disarms until the next RINGING.
"""

import asyncio
import enum
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional
from osp_alarm.config import settings
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


class CallState(str, enum.Enum):
    RINGING = "RINGING"
    OFFHOOK = "OFFHOOK"
    IDLE = "IDLE"


@dataclass
class CallEvent:
    state: CallState
    number: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class CallSignal:
    phone_number: Optional[str]
    detected_at: datetime


def normalize_number(raw: Optional[str]) -> Optional[str]:
    """Digits only: '+48 608-101-402' → '48608101402'."""
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    return digits or None


class CallSignalDebouncer:
    def __init__(self, on_alarm_detected: Callable[[CallSignal], Awaitable[None]],
                 target_phone_number: str = None, cooldown_seconds: float = None,
                 settle_seconds: float = None, clock: Callable[[], float] = time.monotonic):
        self._on_alarm_detected = on_alarm_detected
        self._target = normalize_number(target_phone_number or settings.TARGET_PHONE_NUMBER)
        self._cooldown = settings.CALL_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self._settle = settings.CALL_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        self._clock = clock
        self._last_ring_at: Optional[datetime] = None
        self._last_idle_at: Optional[float] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def handle_event(self, event: CallEvent):
        """Feed one telephony event. Must be called from the running event loop."""
        number = normalize_number(event.number)
        if self._target and number and not number.endswith(self._target):
            return

        state = CallState(event.state)
        if state is CallState.RINGING:
            self._last_ring_at = event.timestamp or datetime.utcnow()
            self._cancel_pending()
            logger.info(f"[CALL] Ringing from tracked number {number or self._target}")
            return

        if state is CallState.IDLE and self._last_ring_at is not None:
            now = self._clock()
            if self._last_idle_at is not None and now - self._last_idle_at < self._cooldown:
                logger.debug("[CALL] Duplicate IDLE ignored")
                return
            self._last_idle_at = now
            self._cancel_pending()
            self._pending = asyncio.create_task(self._fire_after_settle(number), name="call-settle")

    async def _fire_after_settle(self, number: Optional[str]):
        await asyncio.sleep(self._settle)
        self._last_ring_at = None
        self._pending = None
        signal = CallSignal(phone_number=number or self._target, detected_at=datetime.utcnow())
        logger.warning(f"[CALL] 🚨 Alarm call detected from {signal.phone_number}")
        try:
            await self._on_alarm_detected(signal)
        except Exception as e:
            logger.error(f"[CALL] Alarm handler failed: {e}", exc_info=True)

    def _cancel_pending(self):
        if self._pending and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def stop(self):
        self._cancel_pending()
        self._last_ring_at = None
        self._last_idle_at = None
