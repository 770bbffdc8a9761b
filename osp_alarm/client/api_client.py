# osp_alarm/client/api_client.py
"""
HTTP client the device uses to talk to the alarm backend.
Every failure (transport error, non-2xx status or a body that is not
JSON) surfaces as AlarmApiError; the caller decides whether the user should hear about it.
"""

from datetime import datetime
from typing import Optional
import httpx
from osp_alarm.config import settings
from osp_alarm.enums import ResponseType
from osp_alarm.utils.logger import get_logger

logger = get_logger(__name__)


class AlarmApiError(Exception):
    """Backend call failed. status_code is None for transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AlarmApiClient:
    def __init__(self, base_url: str = None, timeout: float = None, transport=None):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise AlarmApiError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise AlarmApiError(
                f"{method} {path} → HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            # e.g. a captive portal answering 200 with an HTML page
            logger.warning(f"{method} {path} returned a non-JSON body")
            raise AlarmApiError(f"{method} {path} → invalid JSON body: {e}",
                                status_code=response.status_code) from e

    async def trigger(self, call_phone_number: str, alarm_time: datetime = None) -> dict:
        payload = {"call_phone_number": call_phone_number}
        if alarm_time:
            payload["alarm_time"] = alarm_time.isoformat()
        return await self._request("POST", "/alarm/trigger", json=payload)

    async def respond(self, alarm_id: int, firefighter_id: int, response_type: ResponseType) -> dict:
        return await self._request("POST", f"/alarm/{alarm_id}/respond", json={
            "firefighter_id": firefighter_id,
            "response_type": ResponseType(response_type).value,
        })

    async def get_stats(self, alarm_id: int) -> dict:
        return await self._request("GET", f"/alarm/{alarm_id}/stats")

    async def get_active_alarm(self) -> Optional[dict]:
        data = await self._request("GET", "/alarm/active")
        return data.get("alarm")

    async def close(self):
        await self._client.aclose()
