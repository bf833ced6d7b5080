from __future__ import annotations

import datetime as dt
import html
import logging
import os
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional, Protocol, Sequence, Union

from .config import EmailConfig, require_env
from .curator import build_bullet_html_from_selected
from .duration import format_duration
from .errors import ConfigurationError
from .models import Article


logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: Union[bytes, str]
    content_type: str


@dataclass
class OutgoingMessage:
    subject: str
    html: str
    to: str
    bcc: List[str] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


class Mailer(Protocol):
    def send(self, message: OutgoingMessage) -> str:
        """Deliver ``message`` and return its message id."""


def _split_addresses(value: str) -> List[str]:
    return [a.strip() for a in value.split(",") if a.strip()]


def resolve_recipients(override: Optional[Sequence[str]] = None, configured: Sequence[str] = ()) -> List[str]:
    """Ordered recipients: CLI override, then EMAIL_RECIPIENTS, EMAIL_TO, config.

    The first address becomes To and the rest BCC.
    """
    if override:
        recipients = [a.strip() for a in override if a and a.strip()]
    elif os.environ.get("EMAIL_RECIPIENTS"):
        recipients = _split_addresses(os.environ["EMAIL_RECIPIENTS"])
    elif os.environ.get("EMAIL_TO"):
        recipients = _split_addresses(os.environ["EMAIL_TO"])
    else:
        recipients = [a.strip() for a in configured if a and a.strip()]
    if not recipients:
        raise ConfigurationError("No email recipients configured (EMAIL_RECIPIENTS, EMAIL_TO or email.recipients)")
    return recipients


def build_message(
    subject: str,
    html_body: str,
    recipients: Sequence[str],
    attachments: Sequence[Attachment] = (),
) -> OutgoingMessage:
    return OutgoingMessage(
        subject=subject,
        html=html_body,
        to=recipients[0],
        bcc=list(recipients[1:]),
        attachments=list(attachments),
    )


def generate_email_content(
    articles: Sequence[Article],
    script_length: int,
    duration_seconds: int,
    today: Optional[dt.date] = None,
) -> str:
    day = today or dt.date.today()
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #333; border-bottom: 2px solid #007acc; padding-bottom: 10px;">Daily AI News Podcast</h2>
      <p style="font-size: 16px; line-height: 1.6; color: #555;">
        Good morning! Here's your daily dose of AI and technology news, curated and turned into a podcast.
      </p>
      <h3 style="color: #333; margin-top: 30px;">Today's Top Stories:</h3>
      {build_bullet_html_from_selected(articles, limit=10)}
      <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin: 30px 0;">
        <h3 style="color: #333; margin-top: 0;">Your Podcast is Ready!</h3>
        <p style="margin-bottom: 10px; color: #555;">
          <strong>Script Length:</strong> {script_length} characters<br>
          <strong>Duration:</strong> {html.escape(format_duration(duration_seconds))}
        </p>
        <p style="color: #555; margin-bottom: 0;">
          Attached you'll find the full podcast script and the audio file.
        </p>
      </div>
      <div style="border-top: 1px solid #eee; padding-top: 20px; margin-top: 30px; text-align: center; color: #888; font-size: 12px;">
        <p>Generated by Daily AI News</p>
        <p>{day.strftime('%A, %B')} {day.day}, {day.year}</p>
      </div>
    </div>
    """


class SmtpMailer:
    def __init__(self, host: str, port: int, user: str, password: str, sender_name: str = "Daily AI News") -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender_name = sender_name

    @classmethod
    def from_config(cls, cfg: EmailConfig) -> "SmtpMailer":
        creds = require_env("EMAIL_USER", "EMAIL_PASS")
        return cls(cfg.smtp_host, cfg.smtp_port, creds["EMAIL_USER"], creds["EMAIL_PASS"], cfg.sender_name)

    def to_mime(self, message: OutgoingMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.sender_name, self.user))
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg["Message-ID"] = make_msgid(domain=self.user.rpartition("@")[2] or None)
        msg.set_content("This message is best viewed in an HTML-capable mail client.")
        msg.add_alternative(message.html, subtype="html")
        for att in message.attachments:
            maintype, _, subtype = att.content_type.partition("/")
            if isinstance(att.content, str):
                msg.add_attachment(att.content, subtype=subtype or "plain", filename=att.filename)
            else:
                msg.add_attachment(att.content, maintype=maintype, subtype=subtype, filename=att.filename)
        return msg

    def send(self, message: OutgoingMessage) -> str:
        msg = self.to_mime(message)
        # BCC addresses travel only in the envelope
        envelope = [message.to, *message.bcc]
        context = ssl.create_default_context()
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as server:
                server.login(self.user, self.password)
                server.send_message(msg, to_addrs=envelope)
        else:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.send_message(msg, to_addrs=envelope)
        logger.info("Email sent", extra={"to": message.to, "bcc": len(message.bcc), "message_id": msg["Message-ID"]})
        return str(msg["Message-ID"])
