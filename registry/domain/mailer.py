"""
Lifecycle mailer - Render-then-send capability used by the domain services.

Sends are always issued after the authoritative state write. A failed
send is logged and reported through ``SendResult``; it never raises into
the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any

from .models import EmailMessage, SendResult
from .ports import EmailSender, EmailTemplate, TemplateRenderer

logger = logging.getLogger(__name__)


@dataclass
class LifecycleMailer:
    """Combines the template renderer and email transport ports."""

    renderer: TemplateRenderer
    sender: EmailSender

    def send(
        self,
        template: EmailTemplate,
        recipient: str,
        context: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> SendResult:
        try:
            rendered = self.renderer.render(template, context)
            message = EmailMessage(
                to=recipient,
                subject=rendered.subject,
                html=rendered.html,
                text=rendered.text,
                headers=dict(headers or {}),
            )
            result = self.sender.send(message)
        except Exception:
            logger.exception("Email dispatch failed for template %s", template.value)
            return SendResult(success=False)

        if not result.success:
            logger.warning("Email transport rejected template %s", template.value)
        return result
