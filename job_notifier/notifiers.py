"""Deliver formatted job messages: Telegram, email, or the log."""
from __future__ import annotations

import re
import smtplib
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.mime.text import MIMEText

import requests

from job_notifier.config import ConfigError, Settings
from job_notifier.log import get_logger
from job_notifier.retry import retry

log = get_logger(__name__)

TELEGRAM_API = "https://api.telegram.org"


def _plain(markdown: str) -> str:
    """Drop Telegram Markdown markers for plain-text channels."""
    text = re.sub(r"(?<!\\)\*(.+?)(?<!\\)\*", r"\1", markdown)
    text = re.sub(r"(?<![\w\\])_(.+?)(?<!\\)_(?!\w)", r"\1", text)
    return re.sub(r"\\([_*`\[])", r"\1", text)


class Notifier(ABC):
    @abstractmethod
    def send(self, text: str) -> tuple[bool, str]:
        """Deliver one message. Returns (ok, detail)."""


class LogNotifier(Notifier):
    """Dry-run notifier: writes messages to the log instead of sending them."""

    def send(self, text: str) -> tuple[bool, str]:
        log.info("Would notify:\n%s", text)
        return True, "logged"


class TelegramNotifier(Notifier):
    def __init__(self, token: str, chat_id: str, timeout: float = 15.0) -> None:
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.ConnectionError, requests.Timeout))
    def _post(self, text: str) -> requests.Response:
        return requests.post(
            f"{TELEGRAM_API}/bot{self.token}/sendMessage",
            json={
                "chat_id": self.chat_id,
                "text": text,
                "parse_mode": "Markdown",
                "disable_web_page_preview": True,
            },
            timeout=self.timeout,
        )

    def send(self, text: str) -> tuple[bool, str]:
        try:
            r = self._post(text)
        except requests.RequestException as e:
            log.error("Telegram send error: %s", e)
            return False, str(e)[:150]

        try:
            body = r.json()
        except ValueError:
            body = {}
        if r.ok and body.get("ok"):
            return True, "sent"

        detail = body.get("description") or f"HTTP {r.status_code}"
        log.error("Telegram rejected message: %s", detail)
        return False, str(detail)[:150]


@retry(max_attempts=3, base_delay=3.0, retryable=(smtplib.SMTPException, OSError))
def _smtp_send(
    host: str, port: int, user: str, password: str,
    from_addr: str, to_addr: str, msg: MIMEText,
) -> None:
    with smtplib.SMTP(host, port) as server:
        server.starttls()
        server.login(user, password)
        server.sendmail(from_addr, [to_addr], msg.as_string())


class EmailNotifier(Notifier):
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        to_addr: str,
        from_addr: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.to_addr = to_addr
        self.from_addr = from_addr or user

    def send(self, text: str) -> tuple[bool, str]:
        body = _plain(text)
        first_line = next((ln for ln in body.splitlines() if ln.strip()), "New job")
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = f"{first_line.strip()} - {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')}"
        msg["From"] = self.from_addr
        msg["To"] = self.to_addr

        try:
            _smtp_send(self.host, self.port, self.user, self.password, self.from_addr, self.to_addr, msg)
        except (smtplib.SMTPException, OSError) as e:
            log.error("Email failed: %s", e)
            return False, str(e)[:150]
        log.info("Email sent to %s", self.to_addr)
        return True, "sent"


def build_notifier(settings: Settings) -> Notifier:
    """Pick the configured notifier; missing credentials are a ConfigError."""
    if settings.notifier == "log":
        return LogNotifier()

    if settings.notifier == "email":
        smtp = settings.smtp
        if not all([smtp.get("host"), smtp.get("user"), smtp.get("password"), smtp.get("to")]):
            raise ConfigError("SMTP not configured (set SMTP_HOST, SMTP_USER, SMTP_PASSWORD, TO_EMAIL in .env)")
        try:
            port = int(smtp.get("port") or 587)
        except ValueError:
            port = 587
        return EmailNotifier(
            smtp["host"], port, smtp["user"], smtp["password"], smtp["to"],
            from_addr=smtp.get("from") or None,
        )

    if not settings.telegram_token or not settings.telegram_chat_id:
        raise ConfigError("Telegram not configured (set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID in .env)")
    return TelegramNotifier(settings.telegram_token, settings.telegram_chat_id, timeout=settings.retry.timeout)
