"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging outbound messages for local development.
"""

import logging
import uuid

from registry.domain.models import EmailMessage, SendResult

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For development purposes - prints the subject and text body to the log.
    """

    def send(self, message: EmailMessage) -> SendResult:
        """
        Log the message to console (simulates email delivery).

        The text body carries the verification/unsubscribe links, so it is
        logged at INFO level to be visible in docker-compose logs.

        Args:
            message: Rendered message

        Returns:
            Successful SendResult with a locally generated message id
        """
        message_id = f"console-{uuid.uuid4()}"
        logger.info(
            "[EMAIL] To: %s Subject: %s Id: %s\n%s",
            message.to,
            message.subject,
            message_id,
            message.text,
        )
        return SendResult(success=True, message_id=message_id)
