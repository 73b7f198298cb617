"""
SMS Providers

All providers share one async interface and never raise for delivery
problems: transport and gateway errors come back as a failed SMSResult so
the message worker can count retries.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from loyalty.config import settings

logger = logging.getLogger(__name__)


def _mask(phone: str) -> str:
    return phone[-4:].rjust(len(phone), '*')


@dataclass
class SMSResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SMSProvider(ABC):
    """Sends a single text message."""

    name = "base"

    @abstractmethod
    async def send_sms(self, phone_number: str, message: str) -> SMSResult:
        ...


class MockSMSProvider(SMSProvider):
    """Development provider: logs the message and fails at a fixed rate."""

    name = "mock"

    def __init__(self, failure_rate: float = 0.1, rng: Optional[random.Random] = None):
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    async def send_sms(self, phone_number: str, message: str) -> SMSResult:
        if self._rng.random() < self.failure_rate:
            logger.info(f"[MOCK SMS] Failed to send to: {_mask(phone_number)}")
            return SMSResult(success=False, error="Mock SMS provider failure")

        logger.info(f"[MOCK SMS] To: {_mask(phone_number)} Message: {message[:50]}...")
        return SMSResult(success=True, message_id=f"mock_{int(time.time() * 1000)}")


class TwilioSMSProvider(SMSProvider):
    """Twilio Programmable Messaging."""

    name = "twilio"
    API_URL = "https://api.twilio.com/2010-04-01"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._transport = transport

    async def send_sms(self, phone_number: str, message: str) -> SMSResult:
        if not self.account_sid or not self.auth_token:
            return SMSResult(success=False, error="Twilio not configured")

        url = f"{self.API_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    auth=(self.account_sid, self.auth_token),
                    data={"To": phone_number, "From": self.from_number, "Body": message},
                )
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed: {e}")
            return SMSResult(success=False, error=f"Twilio request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code in (200, 201):
            return SMSResult(success=True, message_id=payload.get("sid"))

        error = payload.get("message") or f"HTTP {response.status_code}"
        logger.error(f"Twilio error: {error}")
        return SMSResult(success=False, error=error)


class KavenegarSMSProvider(SMSProvider):
    """Kavenegar SMS gateway."""

    name = "kavenegar"
    API_URL = "https://api.kavenegar.com/v1"

    def __init__(
        self,
        api_key: str,
        sender: str = "",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._transport = transport

    async def send_sms(self, phone_number: str, message: str) -> SMSResult:
        if not self.api_key:
            return SMSResult(success=False, error="Kavenegar not configured")

        url = f"{self.API_URL}/{self.api_key}/sms/send.json"
        data = {"receptor": phone_number, "message": message}
        if self.sender:
            data["sender"] = self.sender

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Kavenegar request failed: {e}")
            return SMSResult(success=False, error=f"Kavenegar request failed: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        status = payload.get("return", {}).get("status", response.status_code)
        if status == 200:
            entries = payload.get("entries") or [{}]
            message_id = entries[0].get("messageid")
            return SMSResult(success=True, message_id=str(message_id) if message_id is not None else None)

        error = payload.get("return", {}).get("message") or f"HTTP {response.status_code}"
        logger.error(f"Kavenegar error: {error}")
        return SMSResult(success=False, error=error)


def get_sms_provider() -> SMSProvider:
    """Get SMS provider based on configuration."""
    provider = (settings.SMS_PROVIDER or "mock").lower()

    if provider == "twilio":
        return TwilioSMSProvider(
            settings.SMS_API_KEY,
            settings.SMS_API_SECRET,
            settings.SMS_FROM_NUMBER,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
    if provider == "kavenegar":
        return KavenegarSMSProvider(
            settings.SMS_API_KEY,
            sender=settings.SMS_FROM_NUMBER,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
    if provider != "mock":
        logger.warning(f"Unknown SMS provider '{settings.SMS_PROVIDER}', using mock provider")
    return MockSMSProvider(failure_rate=settings.SMS_MOCK_FAILURE_RATE)
