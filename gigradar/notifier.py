"""High-score alerts, fanned out to every configured recipient.

Delivery is always best-effort: a failure for one recipient is logged and the
next recipient is still tried, and nothing ever propagates to the pipeline.
"""
from __future__ import annotations

import smtplib
from email.mime.text import MIMEText
from typing import Protocol

import requests

from gigradar.config import Settings, get_env, get_int_env
from gigradar.errors import RateLimitedError, TransportError
from gigradar.formatting import format_budget, format_currency, truncate
from gigradar.log import get_logger
from gigradar.models import RawPosting
from gigradar.pacing import retry

log = get_logger(__name__)

DEFAULT_THRESHOLD = 65.0
MAX_ALERT_SKILLS = 5
MAX_ALERT_TITLE = 120
TELEGRAM_API = "https://api.telegram.org"


def format_alert(posting: RawPosting, score: float) -> str:
    skills = ", ".join(posting.skill_tags[:MAX_ALERT_SKILLS]) or "None"
    client = posting.client
    country = client.country if client and client.country else "Unknown"
    lines = [
        "🎯 *HIGH-SCORE JOB ALERT!*",
        "",
        f"*Score:* {score:.2f}% Match ⭐",
        "",
        f"*Title:* {truncate(posting.title or 'Untitled', MAX_ALERT_TITLE)}",
        "",
        f"💰 *Budget:* {format_budget(posting.budget)}",
        f"🌍 *Location:* {country}",
        f"🛠 *Skills:* {skills}",
    ]
    if client and client.total_spend:
        lines.append(f"🏦 *Client spend:* {format_currency(client.total_spend)}")
    lines += ["", f"🔗 [View posting]({posting.url})"]
    return "\n".join(lines)


class Channel(Protocol):
    name: str
    recipients: list[str]

    def send(self, recipient: str, message: str) -> None: ...


class TelegramChannel:
    name = "telegram"

    def __init__(self, bot_token: str, chat_ids: list[str], http: requests.Session | None = None) -> None:
        self.bot_token = bot_token
        self.recipients = list(chat_ids)
        self.http = http or requests.Session()

    @retry(max_attempts=3, base_delay=2.0, max_delay=30.0, retryable=(RateLimitedError,))
    def send(self, recipient: str, message: str) -> None:
        try:
            r = self.http.post(
                f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": recipient,
                    "text": message,
                    "parse_mode": "Markdown",
                    "disable_web_page_preview": False,
                },
                timeout=15,
            )
        except requests.RequestException as exc:
            raise TransportError(f"telegram unreachable: {exc}") from exc
        if r.status_code == 429:
            raise RateLimitedError("telegram rate limit")
        if not r.ok:
            raise TransportError(f"telegram HTTP {r.status_code}: {r.text[:150]}")


class EmailChannel:
    name = "email"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_addr: str,
        recipients: list[str],
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_addr = from_addr
        self.recipients = list(recipients)

    @retry(max_attempts=3, base_delay=3.0, max_delay=30.0, retryable=(smtplib.SMTPException, OSError))
    def send(self, recipient: str, message: str) -> None:
        msg = MIMEText(message.replace("*", ""), "plain", "utf-8")
        msg["Subject"] = "High-score job alert"
        msg["From"] = self.from_addr
        msg["To"] = recipient
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.starttls()
            server.login(self.user, self.password)
            server.sendmail(self.from_addr, [recipient], msg.as_string())


class Notifier:
    def __init__(self, channels: list[Channel], threshold: float = DEFAULT_THRESHOLD) -> None:
        self.channels = channels
        self.threshold = threshold

    def should_notify(self, score: float) -> bool:
        return score >= self.threshold

    def notify(self, posting: RawPosting, score: float) -> int:
        """Send the alert if ``score`` reaches the threshold; returns deliveries made."""
        if not self.should_notify(score):
            log.debug("Score %.2f below threshold %.2f, no alert", score, self.threshold)
            return 0
        if not self.channels:
            log.info("Score %.2f qualifies for an alert but no channel is configured", score)
            return 0

        message = format_alert(posting, score)
        sent = 0
        for channel in self.channels:
            for recipient in channel.recipients:
                try:
                    channel.send(recipient, message)
                    sent += 1
                except Exception as exc:
                    log.error("%s alert to %s failed: %s", channel.name, recipient, exc)
        log.info("Alert for %s sent to %d recipient(s)", posting.source_id, sent)
        return sent


def build_notifier(settings: Settings) -> Notifier:
    """Channels with missing credentials are left out with a warning."""
    channels: list[Channel] = []

    if settings.telegram_bot_token and settings.telegram_chat_ids:
        channels.append(TelegramChannel(settings.telegram_bot_token, list(settings.telegram_chat_ids)))
        log.info("Alerts: Telegram (%d chat(s))", len(settings.telegram_chat_ids))
    else:
        log.warning("Telegram not configured (TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID); Telegram alerts disabled")

    host = get_env("SMTP_HOST")
    user = get_env("SMTP_USER")
    password = get_env("SMTP_PASSWORD")
    if settings.alert_emails:
        if all([host, user, password]):
            channels.append(
                EmailChannel(
                    host,
                    get_int_env("SMTP_PORT", 587),
                    user,
                    password,
                    get_env("FROM_EMAIL", user),
                    list(settings.alert_emails),
                )
            )
            log.info("Alerts: e-mail (%d recipient(s))", len(settings.alert_emails))
        else:
            log.warning("ALERT_EMAILS set but SMTP_HOST/SMTP_USER/SMTP_PASSWORD missing; e-mail alerts disabled")

    return Notifier(channels, threshold=settings.notification_threshold)
