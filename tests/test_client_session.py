# tests/test_client_session.py
"""Unit tests for the per-device alarm session: decide-once gate, timers, voice."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import MagicMock, AsyncMock
from datetime import datetime, timedelta
import httpx
from osp_alarm.client.api_client import AlarmApiClient, AlarmApiError
from osp_alarm.client.device import DeviceServices, SpeechRecognizer
from osp_alarm.client.models import ActiveAlarm, SessionStatus
from osp_alarm.client.session import ClientAlarmSession
from osp_alarm.enums import ResponseType


def make_alarm(window_seconds=300, started_ago=0):
    started_at = datetime.utcnow() - timedelta(seconds=started_ago)
    return ActiveAlarm(id=7, call_number="608101402", started_at=started_at,
                       expires_at=started_at + timedelta(seconds=window_seconds))


def make_devices(voice=False):
    notifier = MagicMock()
    notifier.show = AsyncMock(return_value="notif-1")
    notifier.dismiss = AsyncMock()
    notifier.cancel_all = AsyncMock()
    if voice:
        recognizer = MagicMock()
        recognizer.available = True
        recognizer.start = AsyncMock()
        recognizer.stop = AsyncMock()
        recognizer.cancel = AsyncMock()
    else:
        recognizer = SpeechRecognizer()
    return DeviceServices(notifier=notifier, tts=MagicMock(), recognizer=recognizer, alerts=MagicMock())


def make_session(api=None, firefighter_id=1, countdown_seconds=10.0, alarm=None, **kwargs):
    api = api or MagicMock(respond=AsyncMock(return_value={"success": True}))
    return ClientAlarmSession(alarm or make_alarm(), api, firefighter_id,
                              devices=kwargs.pop("devices", make_devices()),
                              countdown_seconds=countdown_seconds, **kwargs)


class TestAutoDecline:
    @pytest.mark.asyncio
    async def test_countdown_declines_silently(self):
        session = make_session(countdown_seconds=0.02)
        await session.start()
        await asyncio.sleep(0.1)

        session._api.respond.assert_awaited_once_with(7, 1, ResponseType.NIE)
        assert session.status is SessionStatus.RESPONDED
        assert session.alarm.last_response is ResponseType.NIE
        session.devices.alerts.show.assert_not_called()
        await session.close()

    @pytest.mark.asyncio
    async def test_failed_auto_decline_shows_nothing(self):
        api = MagicMock(respond=AsyncMock(side_effect=AlarmApiError("offline")))
        session = make_session(api=api, countdown_seconds=0.02)
        await session.start()
        await asyncio.sleep(0.1)

        api.respond.assert_awaited_once()
        assert session.status is SessionStatus.AWAITING_RESPONSE
        session.devices.alerts.show.assert_not_called()
        await session.close()

    @pytest.mark.asyncio
    async def test_countdown_ticks_down(self):
        session = make_session(countdown_seconds=3, tick_seconds=0.01)
        await session.start()
        assert session.countdown == 3
        await asyncio.sleep(0.1)

        assert session.countdown == 0
        session._api.respond.assert_not_awaited()
        await session.close()


class TestDecideOnce:
    @pytest.mark.asyncio
    async def test_manual_confirm_stops_prompt_timers(self):
        session = make_session()
        await session.start()
        assert session.active_timers == {"expiry", "countdown", "auto_decline"}

        assert await session.respond("TAK") is True

        assert session.status is SessionStatus.RESPONDED
        assert session.active_timers == {"expiry"}
        assert session.devices.notifier.show.await_args.args[1] == "✅ POTWIERDZONO"
        session.devices.notifier.dismiss.assert_awaited_with("notif-1")
        await session.close()

    @pytest.mark.asyncio
    async def test_later_decisions_discarded(self):
        session = make_session(countdown_seconds=0.02)
        await session.start()
        await asyncio.sleep(0.1)               # auto-decline already recorded NIE

        assert await session.respond("TAK") is False
        assert await session.on_speech_results(["tak"]) is False
        session._api.respond.assert_awaited_once()
        await session.close()

    @pytest.mark.asyncio
    async def test_in_flight_submission_blocks_others(self):
        release = asyncio.Event()

        async def slow_respond(*args):
            await release.wait()
            return {"success": True}

        api = MagicMock(respond=AsyncMock(side_effect=slow_respond))
        session = make_session(api=api)
        await session.start()

        first = asyncio.create_task(session.respond("TAK"))
        await asyncio.sleep(0)
        assert session.is_responding
        assert await session.respond("NIE") is False

        release.set()
        assert await first is True
        assert session.alarm.last_response is ResponseType.TAK
        assert api.respond.await_count == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_manual_failure_alerts_and_allows_retry(self):
        api = MagicMock(respond=AsyncMock(side_effect=[AlarmApiError("timeout"), {"success": True}]))
        session = make_session(api=api)
        await session.start()

        assert await session.respond("TAK") is False
        session.devices.alerts.show.assert_called_once()
        assert session.devices.alerts.show.call_args.args[0] == "Błąd"
        assert session.status is SessionStatus.AWAITING_RESPONSE

        assert await session.respond("TAK") is True
        assert session.status is SessionStatus.RESPONDED
        await session.close()

    @pytest.mark.asyncio
    async def test_html_reply_to_tap_alerts_user(self):
        api = AlarmApiClient(base_url="http://backend/api/v1", transport=httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>portal</html>")))
        session = make_session(api=api)
        await session.start()

        assert await session.respond("TAK") is False

        assert session.devices.alerts.show.call_args.args[0] == "Błąd"
        assert session.status is SessionStatus.AWAITING_RESPONSE
        assert not session.is_responding
        await session.close()
        await api.close()

    @pytest.mark.asyncio
    async def test_missing_firefighter(self):
        session = make_session(firefighter_id=None)
        await session.start()

        assert await session.respond("TAK") is False

        session._api.respond.assert_not_awaited()
        assert session.devices.alerts.show.call_args.args[0] == "Brak użytkownika"
        await session.close()


class TestVoice:
    @pytest.mark.asyncio
    async def test_voice_confirm(self):
        session = make_session(devices=make_devices(voice=True))
        await session.start()
        session.devices.recognizer.start.assert_awaited_once_with("pl-PL")
        assert session.is_voice_listening
        assert "voice_timeout" in session.active_timers

        assert await session.on_speech_results(["Tak, jadę"]) is True

        session._api.respond.assert_awaited_once_with(7, 1, ResponseType.TAK)
        session.devices.recognizer.stop.assert_awaited()
        assert not session.is_voice_listening
        await session.close()

    @pytest.mark.asyncio
    async def test_unrecognised_speech_keeps_waiting(self):
        session = make_session(devices=make_devices(voice=True))
        await session.start()

        assert await session.on_speech_results(["halo"]) is False

        assert session.status is SessionStatus.AWAITING_RESPONSE
        assert session.is_voice_listening
        await session.close()

    @pytest.mark.asyncio
    async def test_speech_error_stops_listening(self):
        session = make_session(devices=make_devices(voice=True))
        await session.start()

        await session.on_speech_error("no-match")

        assert not session.is_voice_listening
        assert "voice_timeout" not in session.active_timers
        assert session.status is SessionStatus.AWAITING_RESPONSE
        await session.close()

    @pytest.mark.asyncio
    async def test_start_failure_is_not_fatal(self):
        devices = make_devices(voice=True)
        devices.recognizer.start.side_effect = RuntimeError("mic busy")
        session = make_session(devices=devices)
        await session.start()

        assert not session.is_voice_listening
        assert session.active_timers == {"expiry", "countdown", "auto_decline"}
        await session.close()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_expiry_closes_session(self):
        on_closed = MagicMock()
        session = make_session(alarm=make_alarm(window_seconds=0.05), on_closed=on_closed)
        await session.start()
        await asyncio.sleep(0.15)

        assert session.closed
        assert session.active_timers == set()
        on_closed.assert_called_once_with(session)
        session._api.respond.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_expired_alarm_never_prompts(self):
        session = make_session(alarm=make_alarm(window_seconds=60, started_ago=120))
        await session.start()

        assert session.closed
        session.devices.tts.speak.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_cancels_everything(self):
        session = make_session(devices=make_devices(voice=True))
        await session.start()

        await session.dismiss()

        assert session.active_timers == set()
        session.devices.recognizer.cancel.assert_awaited()
        session.devices.notifier.cancel_all.assert_awaited_once()
        assert await session.respond("TAK") is False

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with make_session() as session:
            assert not session.closed
        assert session.closed

    @pytest.mark.asyncio
    async def test_location_shared_only_after_confirm(self):
        session = make_session()
        await session.start()
        assert not session.should_share_location()

        await session.respond("TAK")

        assert session.should_share_location()
        assert not session.should_share_location(now=session.alarm.expires_at)
        await session.close()
        assert not session.should_share_location()

    @pytest.mark.asyncio
    async def test_decline_does_not_share_location(self):
        session = make_session()
        await session.start()
        await session.respond("NIE")
        assert not session.should_share_location()
        await session.close()
