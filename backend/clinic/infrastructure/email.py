from __future__ import annotations

import html as html_lib
import re
from functools import lru_cache
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import UpstreamError
from ..observability.logging import get_logger
from ..settings import settings
from .aws_clients import aws_client


class NotificationCollaborator(Protocol):
    def send_email(self, *, to: str, subject: str, html: str) -> None:
        ...


def html_to_text(html: str) -> str:
    text = re.sub(r"<\s*br\s*/?>|</p>", "\n", html or "", flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html_lib.unescape(text).strip()


class SesEmailSender:
    def __init__(self, *, from_email: str | None = None):
        self._from_email = from_email
        self._log = get_logger("ses_email")

    def send_email(self, *, to: str, subject: str, html: str) -> None:
        to_ = str(to or "").strip()
        frm = str(self._from_email or settings.email_from_address or "").strip()
        subj = str(subject or "").strip()[:200]
        if not to_:
            raise UpstreamError(message="Email recipient is missing", status_code=400, service="ses")
        if not frm:
            raise UpstreamError(message="EMAIL_FROM_ADDRESS is not set", status_code=500, service="ses")

        try:
            resp = aws_client("sesv2").send_email(
                FromEmailAddress=frm,
                Destination={"ToAddresses": [to_]},
                Content={
                    "Simple": {
                        "Subject": {"Data": subj},
                        "Body": {
                            "Html": {"Data": html or ""},
                            "Text": {"Data": html_to_text(html) or "(empty)"},
                        },
                    }
                },
            )
        except (BotoCoreError, ClientError) as e:
            self._log.error("email_send_failed", subject=subj, error=str(e))
            raise UpstreamError(message="Email delivery failed", service="ses", cause=e)

        msg_id = (resp or {}).get("MessageId") if isinstance(resp, dict) else None
        self._log.info("email_sent", message_id=msg_id, subject=subj)


@lru_cache(maxsize=1)
def get_notifier() -> NotificationCollaborator:
    return SesEmailSender()
