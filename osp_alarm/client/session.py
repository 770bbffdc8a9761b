# osp_alarm/client/session.py
"""
Per-device alarm session.

A session exists for one alarm from the moment the device learns about it
until the response window (alarm start + ALARM_RESPONSE_WINDOW_SECONDS)
elapses or the user dismisses it:

    awaiting_response ──(tap | voice | countdown)──▶ responded
            └──────────────(window elapsed / dismiss)──────────▶ closed

Three producers race to decide: the manual TAK/NIE buttons, recognised
speech and the countdown auto-decline. The first accepted decision wins and
every later one is discarded. A submission that fails re-opens the gate so
the user can retry. The countdown path is silent: with nobody at the device
there is no one to show an error to, and the server already holds NIE.

Every timer the session starts is owned by SessionTimers and cancelled on
close, so nothing outlives the session.
"""

import asyncio
import enum
from datetime import datetime
from math import ceil
from typing import Callable, Coroutine, Iterable, Optional
from osp_alarm.client.api_client import AlarmApiError
from osp_alarm.client.device import DeviceServices
from osp_alarm.client.models import ActiveAlarm, SessionStatus
from osp_alarm.client.speech import detect_response_from_results
from osp_alarm.config import settings
from osp_alarm.enums import ResponseType
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)

NOTIFICATION_TITLE = "🚨 TRWAJĄCY ALARM"


class DecisionSource(str, enum.Enum):
    MANUAL = "manual"
    VOICE = "voice"
    TIMEOUT = "timeout"


class SessionTimers:
    """Named asyncio tasks owned by one session."""

    def __init__(self, label: str):
        self._label = label
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, name: str, coro: Coroutine) -> asyncio.Task:
        self.cancel(name)
        task = asyncio.create_task(coro, name=f"{self._label}-{name}")
        self._tasks[name] = task
        task.add_done_callback(lambda t, n=name: self._forget(n, t))
        return task

    def _forget(self, name: str, task: asyncio.Task):
        if self._tasks.get(name) is task:
            del self._tasks[name]

    def cancel(self, name: str):
        task = self._tasks.pop(name, None)
        # A timer may cancel its siblings from inside its own callback
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel_all(self):
        for name in list(self._tasks):
            self.cancel(name)

    @property
    def active(self) -> set:
        return {name for name, task in self._tasks.items() if not task.done()}


class ClientAlarmSession:
    def __init__(self, alarm: ActiveAlarm, api, firefighter_id: Optional[int],
                 devices: DeviceServices = None, countdown_seconds: float = None,
                 tick_seconds: float = 1.0,
                 on_closed: Optional[Callable[["ClientAlarmSession"], None]] = None):
        self.alarm = alarm
        self.firefighter_id = firefighter_id
        self.devices = devices or DeviceServices()
        self.countdown_seconds = (settings.DECISION_COUNTDOWN_SECONDS
                                  if countdown_seconds is None else countdown_seconds)
        self.countdown = ceil(self.countdown_seconds)
        self.is_voice_listening = False
        self.is_responding = False
        self.closed = False
        self.last_result: Optional[dict] = None
        self._api = api
        self._tick_seconds = tick_seconds
        self._on_closed = on_closed
        self._timers = SessionTimers(f"alarm-{alarm.id}")
        self._notification_id: Optional[str] = None

    # ── State ────────────────────────────────────────────────────────────
    @property
    def status(self) -> SessionStatus:
        return self.alarm.status

    @property
    def active_timers(self) -> set:
        return self._timers.active

    def should_share_location(self, now: datetime = None) -> bool:
        """Location reporting runs only for a confirmed, still-open alarm."""
        return (not self.closed
                and self.alarm.status is SessionStatus.RESPONDED
                and self.alarm.last_response is ResponseType.TAK
                and not self.alarm.is_expired(now))

    # ── Lifecycle ────────────────────────────────────────────────────────
    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self):
        if self.alarm.is_expired():
            logger.info(f"[SESSION] Alarm {self.alarm.id} already past its window")
            await self.close()
            return
        logger.info(f"[SESSION] Alarm {self.alarm.id} opened, window ends {self.alarm.expires_at.isoformat()}")
        self._timers.start("expiry", self._expire_at_window_end())
        if self.alarm.status is SessionStatus.AWAITING_RESPONSE:
            await self._prompt()

    async def dismiss(self):
        logger.info(f"[SESSION] Alarm {self.alarm.id} dismissed by user")
        await self.close()

    async def close(self):
        if self.closed:
            return
        self.closed = True
        self._timers.cancel_all()
        await self._stop_voice_capture()
        self.devices.tts.stop()
        await self._dismiss_notification()
        try:
            await self.devices.notifier.cancel_all()
        except Exception as e:
            logger.warning(f"[SESSION] Cancel notifications failed: {e}")
        logger.info(f"[SESSION] Alarm {self.alarm.id} session closed")
        if self._on_closed:
            self._on_closed(self)

    # ── Decision producers ───────────────────────────────────────────────
    async def respond(self, response_type, silent: bool = False) -> bool:
        """Manual TAK/NIE tap."""
        return await self._submit(ResponseType(response_type), silent, DecisionSource.MANUAL)

    async def on_speech_results(self, phrases: Iterable[str]) -> bool:
        if self.closed or self.alarm.status is not SessionStatus.AWAITING_RESPONSE:
            return False
        response = detect_response_from_results(phrases)
        if response is None:
            return False
        logger.info(f"[VOICE] Alarm {self.alarm.id}: recognised {response.value}")
        await self._stop_voice_capture()
        return await self._submit(response, False, DecisionSource.VOICE)

    async def on_speech_error(self, error):
        logger.warning(f"[VOICE] Recognition error: {error}")
        await self._stop_voice_capture()

    # ── Decide-once gate ─────────────────────────────────────────────────
    async def _submit(self, response_type: ResponseType, silent: bool, source: DecisionSource) -> bool:
        if self.closed or self.alarm.status is SessionStatus.RESPONDED or self.is_responding:
            logger.debug(f"[SESSION] Discarded {source.value} {response_type.value} for alarm {self.alarm.id}")
            return False

        if self.firefighter_id is None:
            logger.warning(f"[SESSION] No active firefighter, cannot answer alarm {self.alarm.id}")
            if not silent:
                self.devices.alerts.show("Brak użytkownika", "Zaloguj się ponownie, aby potwierdzić alarm.")
            return False

        self.is_responding = True
        try:
            result = await self._api.respond(self.alarm.id, self.firefighter_id, response_type)
        except AlarmApiError as e:
            logger.error(f"[SESSION] Sending {response_type.value} ({source.value}) "
                         f"for alarm {self.alarm.id} failed: {e}")
            if not silent:
                self.devices.alerts.show("Błąd", "Nie udało się wysłać odpowiedzi. Spróbuj ponownie.")
            return False
        finally:
            self.is_responding = False

        self.last_result = result
        logger.info(f"[SESSION] Alarm {self.alarm.id}: {response_type.value} sent ({source.value})")
        if not self.closed:
            await self._enter_responded(response_type)
        return True

    async def _enter_responded(self, response_type: ResponseType):
        self.alarm.status = SessionStatus.RESPONDED
        self.alarm.last_response = response_type
        for name in ("countdown", "auto_decline", "voice_timeout"):
            self._timers.cancel(name)
        await self._stop_voice_capture()
        self.devices.tts.stop()
        await self._dismiss_notification()
        body = "✅ POTWIERDZONO" if response_type is ResponseType.TAK else "❌ ODRZUCONO"
        await self._notify(body)

    # ── Timers ───────────────────────────────────────────────────────────
    async def _prompt(self):
        self.countdown = ceil(self.countdown_seconds)
        self.devices.tts.stop()
        self.devices.tts.speak(settings.VOICE_PROMPT, language=settings.VOICE_LOCALE, rate=0.92, pitch=1.0)
        await self._notify("Potwierdź udział w alarmie. Kliknij aby odpowiedzieć.")
        await self._start_voice_capture()
        self._timers.start("countdown", self._tick_countdown())
        self._timers.start("auto_decline", self._auto_decline())

    async def _tick_countdown(self):
        while self.countdown > 0:
            await asyncio.sleep(self._tick_seconds)
            self.countdown -= 1

    async def _auto_decline(self):
        await asyncio.sleep(self.countdown_seconds)
        logger.info(f"[SESSION] Alarm {self.alarm.id}: no decision in window, declining")
        await self._submit(ResponseType.NIE, True, DecisionSource.TIMEOUT)

    async def _expire_at_window_end(self):
        remaining = (self.alarm.expires_at - datetime.utcnow()).total_seconds()
        if remaining > 0:
            await asyncio.sleep(remaining)
        logger.info(f"[SESSION] Alarm {self.alarm.id}: response window elapsed")
        await self.close()

    # ── Voice capture ────────────────────────────────────────────────────
    async def _start_voice_capture(self):
        recognizer = self.devices.recognizer
        if not getattr(recognizer, "available", False):
            logger.debug("[VOICE] Recognizer not available, skipping voice capture")
            return
        try:
            await recognizer.start(settings.VOICE_LOCALE)
        except Exception as e:
            logger.warning(f"[VOICE] Start failed: {e}")
            self.is_voice_listening = False
            return
        self.is_voice_listening = True
        self._timers.start("voice_timeout", self._voice_timeout())

    async def _voice_timeout(self):
        await asyncio.sleep(self.countdown_seconds)
        await self._stop_voice_capture()

    async def _stop_voice_capture(self):
        self._timers.cancel("voice_timeout")
        if not self.is_voice_listening:
            return
        self.is_voice_listening = False
        recognizer = self.devices.recognizer
        for action in (recognizer.stop, recognizer.cancel):
            try:
                await action()
            except Exception as e:
                logger.warning(f"[VOICE] {action.__name__} failed: {e}")

    # ── Notifications ────────────────────────────────────────────────────
    async def _notify(self, body: str):
        try:
            self._notification_id = await self.devices.notifier.show(NOTIFICATION_TITLE, body, sticky=True)
        except Exception as e:
            logger.warning(f"[SESSION] Notification failed: {e}")

    async def _dismiss_notification(self):
        if not self._notification_id:
            return
        notification_id, self._notification_id = self._notification_id, None
        try:
            await self.devices.notifier.dismiss(notification_id)
        except Exception as e:
            logger.warning(f"[SESSION] Dismiss notification failed: {e}")
