"""
Console notification adapters - Implement the SmsSender and EmailSender protocols.

This module provides console-based implementations of the domain's
notification ports, logging one-time passwords for development purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleSmsSender:
    """
    Implements SmsSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints messages to the log.
    """

    def send_sms(self, phone: str, message: str) -> None:
        """
        Log the SMS (simulates delivery).

        The message is logged at INFO level to be visible in docker-compose logs.

        Args:
            phone: Recipient phone number
            message: Message body containing the one-time password
        """
        logger.info("[SMS] Phone: %s Message: %s", phone, message)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    In production, this would be replaced with an SMTP or provider adapter.
    """

    def send_email(self, email: str, message: str) -> None:
        """
        Log the email (simulates delivery).

        Args:
            email: Recipient email address (normalized by domain layer)
            message: Message body containing the one-time password
        """
        logger.info("[EMAIL] Email: %s Message: %s", email, message)
