"""
Notification dispatcher - sends an OTP over SMS and email.

Dispatch happens before any database write. Any provider exception is
converted to NotificationFailed so the calling flow aborts with nothing
persisted.
"""

import logging
from dataclasses import dataclass

from .exceptions import NotificationFailed
from .ports import EmailSender, SmsSender

logger = logging.getLogger(__name__)

OTP_MESSAGE = "Your one time password is {code}"


@dataclass
class NotificationDispatcher:
    sms_sender: SmsSender
    email_sender: EmailSender

    def send_otp(self, phone: str, email: str, code: str) -> None:
        """
        Deliver the code to both channels, SMS first.

        Raises:
            NotificationFailed: If either channel fails
        """
        message = OTP_MESSAGE.format(code=code)
        try:
            self.sms_sender.send_sms(phone, message)
            self.email_sender.send_email(email, message)
        except Exception as e:
            logger.error("Failed to send OTP to phone=%s email=%s: %s", phone, email, e)
            raise NotificationFailed() from e
