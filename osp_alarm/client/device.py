# osp_alarm/client/device.py
"""
Device capabilities the alarm session drives: local notifications,
text-to-speech, speech recognition and user-facing alerts.

The base classes only log, which is what a headless device (or a test)
gets by default. Platform integrations subclass them.
"""

from dataclasses import dataclass, field
from typing import Optional
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


class Notifier:
    async def show(self, title: str, body: str, sticky: bool = True) -> Optional[str]:
        logger.info(f"[NOTIFY] {title}: {body}")
        return None

    async def dismiss(self, notification_id: str):
        logger.debug(f"[NOTIFY] dismiss {notification_id}")

    async def cancel_all(self):
        logger.debug("[NOTIFY] cancel all scheduled")


class SpeechSynthesizer:
    def speak(self, text: str, language: str, rate: float = 0.92, pitch: float = 1.0):
        logger.info(f"[TTS] ({language}) {text}")

    def stop(self):
        pass


class SpeechRecognizer:
    """
    Bounded speech capture. Results are delivered by the platform layer
    calling ClientAlarmSession.on_speech_results / on_speech_error.
    """
    available = False

    async def start(self, locale: str):
        raise RuntimeError("Speech recognition not available on this device")

    async def stop(self):
        pass

    async def cancel(self):
        pass


class UserAlerts:
    def show(self, title: str, message: str):
        logger.warning(f"[ALERT] {title}: {message}")


@dataclass
class DeviceServices:
    notifier: Notifier = field(default_factory=Notifier)
    tts: SpeechSynthesizer = field(default_factory=SpeechSynthesizer)
    recognizer: SpeechRecognizer = field(default_factory=SpeechRecognizer)
    alerts: UserAlerts = field(default_factory=UserAlerts)
