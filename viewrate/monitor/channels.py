"""Notification channels — email (SendGrid), chat (Zalo OA) and SMS (Twilio) delivery."""

from __future__ import annotations

import abc
import base64
from html import escape as html_escape

import aiohttp
import structlog

from viewrate.core.config import ChatConfig, EmailConfig, SmsConfig
from viewrate.core.types import Channel
from viewrate.monitor.types import AlertMessage

logger = structlog.get_logger(__name__)


class NotificationChannel(abc.ABC):
    """Base class for alert delivery channels.

    ``send`` reports the outcome as a bool; transport failures are logged
    and returned as False rather than raised.
    """

    channel: Channel

    @abc.abstractmethod
    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        """Send an alert message to one recipient. Returns True on success."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class _HttpChannel(NotificationChannel):
    """Shared aiohttp session handling."""

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=15),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class EmailChannel(_HttpChannel):
    """Delivers alerts as HTML email through the SendGrid v3 API."""

    channel = Channel.EMAIL

    def __init__(self, config: EmailConfig) -> None:
        super().__init__()
        self._api_key = config.api_key.get_secret_value()
        self._from_address = config.from_address
        self._from_name = config.from_name
        self._url = config.base_url

    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        html_parts = [
            f"<h1>{html_escape(msg.title)}</h1>",
            f"<p>{html_escape(msg.body)}</p>",
        ]
        if msg.url:
            link = html_escape(msg.url)
            html_parts.append(f'<p>View the video: <a href="{link}">{link}</a></p>')
        html_parts.append("<p>Please check the dashboard for more details.</p>")

        payload = {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self._from_address, "name": self._from_name},
            "subject": msg.title,
            "content": [
                {"type": "text/plain", "value": msg.text or msg.body},
                {"type": "text/html", "value": "\n".join(html_parts)},
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            session = self._get_session()
            async with session.post(self._url, json=payload, headers=headers) as resp:
                if resp.status in (200, 202):
                    return True
                body = await resp.text()
                logger.warning(
                    "email_send_failed",
                    recipient=recipient,
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception("email_send_error", recipient=recipient)
            return False


class ChatChannel(_HttpChannel):
    """Delivers alerts as text messages through the Zalo Official Account API."""

    channel = Channel.CHAT

    def __init__(self, config: ChatConfig) -> None:
        super().__init__()
        self._access_token = config.access_token.get_secret_value()
        self._url = config.base_url

    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        text = msg.text or msg.title
        if msg.url:
            text = f"{text}\n{msg.url}"
        payload = {
            "recipient": {"user_id": recipient},
            "message": {"text": text},
        }
        headers = {"access_token": self._access_token}

        try:
            session = self._get_session()
            async with session.post(self._url, json=payload, headers=headers) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.warning(
                        "chat_send_failed",
                        recipient=recipient,
                        status=resp.status,
                        body=body[:200],
                    )
                    return False
                data = await resp.json(content_type=None)
                # Zalo reports application errors with HTTP 200 and error != 0.
                if isinstance(data, dict) and data.get("error", 0) == 0:
                    return True
                logger.warning(
                    "chat_send_rejected",
                    recipient=recipient,
                    error=data.get("error") if isinstance(data, dict) else None,
                    message=data.get("message") if isinstance(data, dict) else None,
                )
                return False
        except Exception:
            logger.exception("chat_send_error", recipient=recipient)
            return False


class SmsChannel(_HttpChannel):
    """Delivers alerts as SMS through the Twilio Messages API."""

    channel = Channel.SMS

    def __init__(self, config: SmsConfig) -> None:
        super().__init__()
        credentials = f"{config.account_sid}:{config.auth_token.get_secret_value()}"
        self._headers = {
            "Authorization": "Basic " + base64.b64encode(credentials.encode()).decode(),
        }
        self._from_number = config.from_number
        self._url = f"{config.base_url}/Accounts/{config.account_sid}/Messages.json"

    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        form = {
            "To": recipient,
            "From": self._from_number,
            "Body": msg.text or msg.title,
        }

        try:
            session = self._get_session()
            async with session.post(self._url, data=form, headers=self._headers) as resp:
                if resp.status in (200, 201):
                    return True
                body = await resp.text()
                logger.warning(
                    "sms_send_failed",
                    recipient=recipient,
                    status=resp.status,
                    body=body[:200],
                )
                return False
        except Exception:
            logger.exception("sms_send_error", recipient=recipient)
            return False


class LogChannel(NotificationChannel):
    """Dry-run channel: logs the alert and reports it delivered."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    async def send(self, recipient: str, msg: AlertMessage) -> bool:
        logger.info(
            "dry_run_send",
            channel=self.channel.value,
            recipient=recipient,
            tier=msg.tier.label,
            text=msg.text,
            is_test=msg.is_test,
        )
        return True

    async def close(self) -> None:
        pass
