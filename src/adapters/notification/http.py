"""
HTTP SMS adapter - Implements the SmsSender protocol against a JSON gateway.

POSTs {"to": phone, "message": message} with an optional bearer token.
Any transport error or non-2xx response raises, which the dispatcher turns
into NotificationFailed before anything is persisted.
"""

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass
class HttpSmsSender:
    url: str
    auth_token: str | None = None
    timeout: float = 5.0

    def send_sms(self, phone: str, message: str) -> None:
        if not self.url.strip():
            raise RuntimeError("SMS URL must be configured for HTTP provider")

        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        response = httpx.post(
            self.url,
            json={"to": phone, "message": message},
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info("SMS accepted by gateway for %s (status %d)", phone, response.status_code)
