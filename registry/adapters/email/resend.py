"""Email delivery via the Resend API."""

import logging
from typing import Any

import httpx

from registry.domain.models import EmailMessage, SendResult

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendEmailSender:
    """Sends transactional emails via the Resend API.

    Transport and API failures are logged and reported as an unsuccessful
    SendResult; nothing is retried here.
    """

    def __init__(
        self,
        api_key: str,
        from_address: str,
        reply_to: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._reply_to = reply_to
        self._client = client
        self._timeout = timeout

    def send(self, message: EmailMessage) -> SendResult:
        """Send one message.

        Returns the Resend email ID on success.
        """
        if not self._api_key:
            logger.warning("Resend API key not configured; email not sent")
            return SendResult(success=False)

        payload: dict[str, Any] = {
            "from": self._from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        if self._reply_to:
            payload["reply_to"] = self._reply_to
        if message.headers:
            payload["headers"] = message.headers

        try:
            response = self._post(payload)
        except httpx.HTTPError:
            logger.exception("Error sending email via Resend")
            return SendResult(success=False)

        if not response.is_success:
            logger.error(
                "Failed to send email: status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            return SendResult(success=False)

        try:
            email_id = response.json().get("id")
        except ValueError:
            email_id = None
        logger.info("Email sent: subject=%r id=%s", message.subject, email_id)
        return SendResult(success=True, message_id=str(email_id) if email_id else None)

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return self._client.post(RESEND_API_URL, headers=headers, json=payload)
        with httpx.Client(timeout=self._timeout) as client:
            return client.post(RESEND_API_URL, headers=headers, json=payload)
