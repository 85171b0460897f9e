from __future__ import annotations

import html as html_lib
from typing import Any

from ..db.mongo.ids import utcnow
from ..errors import UpstreamError
from ..infrastructure.email import NotificationCollaborator
from ..query.builder import QuerySpec
from ..schemas.common import to_document, validate_payload
from ..schemas.content import EmailSendIn
from ..settings import settings
from .resource import ResourceService, actor_id
from .workshops import ensure_subscribed

RECENT_LIMIT = 3


def render_email(content: str) -> str:
    paragraphs = [p.strip() for p in str(content or "").split("\n\n") if p.strip()]
    body = "".join(f"<p>{html_lib.escape(p).replace(chr(10), '<br/>')}</p>" for p in paragraphs)
    return f"<div style=\"font-family: sans-serif; line-height: 1.5\">{body}</div>"


class EmailLogService(ResourceService):
    collection_name = "emails"
    model = EmailSendIn
    not_found_message = "Email not found"
    owner_field = None
    query_spec = QuerySpec(
        default_sort="-createdAt",
        search_fields=("subject", "to"),
        field_types={"isRead": "bool", "sentToCount": "int", "scheduledDate": "date"},
    )

    def send(self, data: dict[str, Any], notifier: NotificationCollaborator, *, actor: Any = None) -> dict[str, Any]:
        payload = validate_payload(EmailSendIn, data)
        doc = to_document(payload)
        html = render_email(payload.content)

        sent: list[str] = []
        failed: list[dict[str, str]] = []
        for to in dict.fromkeys(str(r).lower() for r in payload.recipients):
            try:
                notifier.send_email(to=to, subject=payload.subject, html=html)
            except UpstreamError as e:
                failed.append({"recipient": to, "error": e.message})
                continue
            sent.append(to)
            self.coll.insert_one(
                {
                    "userId": doc.get("userId"),
                    "to": to,
                    "subject": payload.subject,
                    "content": payload.content,
                    "sender": settings.email_from_address or "",
                    "category": payload.category,
                    "sentToCount": 1,
                    "isRead": False,
                    "scheduledDate": utcnow(),
                    "tags": doc.get("tags") or [],
                    "sentBy": actor_id(actor),
                }
            )

        self.log.info("emails_sent", sent=len(sent), failed=len(failed), category=payload.category)
        return {"sentCount": len(sent), "sent": sent, "failed": failed}

    def _owner_filter(self, actor: Any) -> dict[str, Any]:
        return {"$or": [{"userId": actor_id(actor)}, {"to": str(getattr(actor, "email", "") or "").lower()}]}

    def for_user(self, actor: Any, *, limit: int = 0) -> list[dict[str, Any]]:
        ensure_subscribed(actor, "Access denied. Only for subscribed users.")
        return self.coll.find(self._owner_filter(actor), sort=[("createdAt", -1), ("_id", 1)], limit=limit)

    def recent(self, actor: Any) -> list[dict[str, Any]]:
        return self.for_user(actor, limit=RECENT_LIMIT)

    def get_for(self, item_id: Any, actor: Any) -> dict[str, Any]:
        doc = self.load(item_id)
        if getattr(actor, "is_admin", False):
            return doc
        ensure_subscribed(actor, "Access denied. Only for subscribed users.")
        mine = doc.get("userId") == actor_id(actor) or doc.get("to") == str(getattr(actor, "email", "") or "").lower()
        if not mine:
            raise self.not_found()
        return doc


emails = EmailLogService()
