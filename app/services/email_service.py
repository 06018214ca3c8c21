"""
Resend email sender for candidate outreach.

Wraps plain-text candidate messages into a simple HTML layout and sends
them through the Resend API. Failures are returned as DeliveryResults.
"""

import html
import logging
from typing import Optional

import resend

from app.core.config import settings
from app.services.messaging import DeliveryResult

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Vamos: повідомлення щодо вашої заявки"


def intro_subject(first_name: str) -> str:
    return f"{first_name}, дякуємо за інтерес до Vamos!"


def test_task_subject(first_name: str, request_title: Optional[str]) -> str:
    return f"{first_name}, ваше тестове завдання для позиції {request_title or 'у Vamos'}"


def decision_subject(first_name: str) -> str:
    return f"{first_name}, результати тестового завдання"


class EmailSender:
    """
    Service for sending candidate emails via Resend.
    """

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email or settings.OUTREACH_FROM_EMAIL

    def send(self, identity: str, text: str, subject: Optional[str] = None, **options) -> DeliveryResult:
        """
        Send one email.

        Args:
            identity: Recipient email address
            text: Plain-text message body
            subject: Subject line (Ukrainian default when omitted)

        Returns:
            DeliveryResult with the Resend email id on success
        """
        if not self.api_key:
            logger.error("RESEND_API_KEY is not configured")
            return DeliveryResult(success=False, error="Email service not configured")

        resend.api_key = self.api_key
        params = {
            "from": self.from_email,
            "to": [identity],
            "subject": subject or DEFAULT_SUBJECT,
            "html": self._build_html(text),
            "text": text,
        }

        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.error(f"Resend error sending to {identity}: {e}")
            return DeliveryResult(success=False, error=str(e))

        email_id = response.get("id") if response else None
        if not email_id:
            logger.error(f"Resend returned no email id for {identity}: {response}")
            return DeliveryResult(success=False, error="Resend returned no email id")

        logger.info(f"Email sent to {identity} (Email ID: {email_id})")
        return DeliveryResult(success=True, message_id=email_id)

    def _build_html(self, text: str) -> str:
        """
        Build the HTML body: one paragraph per blank-line separated block.
        """
        paragraphs = [block.strip() for block in text.split("\n\n") if block.strip()]
        body = "\n".join(
            f'<p style="margin: 0 0 16px 0; color: #333333; font-size: 16px; line-height: 1.6;">'
            f'{html.escape(block).replace(chr(10), "<br>")}</p>'
            for block in paragraphs
        )

        return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
    <table role="presentation" style="width: 100%; border-collapse: collapse;">
        <tr>
            <td align="center" style="padding: 40px 0;">
                <table role="presentation" style="width: 600px; border-collapse: collapse; background-color: #ffffff; border-radius: 8px;">
                    <tr>
                        <td style="padding: 40px;">
                            {body}
                            <p style="margin: 24px 0 0 0; color: #666666; font-size: 14px;">Команда Vamos</p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>
"""
