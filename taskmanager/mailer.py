import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from .config import FROM_EMAIL, MAIL_TIMEOUT_SECONDS, SENDGRID_API_KEY

logger = logging.getLogger(__name__)


class Mailer:
    """SendGrid mail transport.

    Without an API key it only logs what it would have sent. Transport
    errors are logged and reported as ``False``; ``send`` never raises.
    """

    def __init__(
        self,
        api_key: Optional[str] = SENDGRID_API_KEY,
        from_email: str = FROM_EMAIL,
        timeout: float = MAIL_TIMEOUT_SECONDS,
    ):
        self.from_email = from_email
        self._client = None
        if api_key:
            self._client = SendGridAPIClient(api_key)
            self._client.client.timeout = timeout
            logger.info("SendGrid API key configured")
        else:
            logger.warning("SendGrid API key not configured - notifications will not be emailed")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def send(self, to: str, subject: str, html: str, text: str) -> bool:
        if self._client is None:
            logger.info("Would send email to %s: %s", to, subject)
            return False

        message = Mail(
            from_email=self.from_email,
            to_emails=to,
            subject=subject,
            plain_text_content=text,
            html_content=html,
        )
        try:
            self._client.send(message)
        except Exception as exc:
            # python_http_client errors carry the API response in .body
            logger.error("Error sending email to %s: %s", to, getattr(exc, "body", None) or exc)
            return False

        logger.info("Email sent to %s: %s", to, subject)
        return True
