"""
Jinja2 template renderer - Implements TemplateRenderer protocol.

Each template ships as an HTML and a plain-text variant under
``adapters/email/templates``. Only the HTML variants are autoescaped.
"""

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from registry.domain.models import RenderedEmail
from registry.domain.ports import EmailTemplate

# Jinja2 template environment
TEMPLATE_DIR = Path(__file__).resolve().parent / "email" / "templates"
_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=True),
)

SUBJECTS: dict[EmailTemplate, str] = {
    EmailTemplate.VERIFICATION: "An invitation to something different",
    EmailTemplate.WELCOME: "You are in",
    EmailTemplate.REMINDER_24H: "Quick reminder",
    EmailTemplate.REMINDER_72H: "Still interested?",
    EmailTemplate.REMINDER_FINAL: "Your signup expires tomorrow",
}

# Templates carrying a "Verify my email" button
_NEEDS_VERIFY_URL = frozenset(
    {
        EmailTemplate.VERIFICATION,
        EmailTemplate.REMINDER_24H,
        EmailTemplate.REMINDER_72H,
        EmailTemplate.REMINDER_FINAL,
    }
)


class JinjaTemplateRenderer:
    """
    Implements TemplateRenderer protocol with the packaged templates.

    Expected context keys: ``first_name`` (optional), ``verify_url``
    (templates with a button), ``unsubscribe_url``.
    """

    def __init__(self, sender_name: str = "Registry") -> None:
        self._sender_name = sender_name

    def render(self, template: EmailTemplate, context: dict[str, Any]) -> RenderedEmail:
        verify_url = context.get("verify_url")
        if template in _NEEDS_VERIFY_URL and not verify_url:
            raise KeyError(f"Template {template.value} requires verify_url")

        subject = SUBJECTS[template]
        variables = {
            "subject": subject,
            "sender_name": self._sender_name,
            "first_name": context.get("first_name"),
            "verify_url": verify_url,
            "unsubscribe_url": context["unsubscribe_url"],
        }
        return RenderedEmail(
            subject=subject,
            html=_jinja_env.get_template(f"{template.value}.html").render(**variables),
            text=_jinja_env.get_template(f"{template.value}.txt").render(**variables),
        )
