import asyncio
import logging
from typing import Dict, Optional

import sib_api_v3_sdk
from sib_api_v3_sdk.rest import ApiException

from ...application.ports.email_sender import EmailDeliveryError, EmailSender

logger = logging.getLogger(__name__)

FALLBACK_OTP_HTML = (
    "<p>Hi {name},</p>"
    "<p>Your verification code is <strong>{otp}</strong>.</p>"
    "<p>It expires in 10 minutes. If you did not request it, ignore this email.</p>"
)


def is_retryable(error: ApiException) -> bool:
    """Server errors, rate limiting and responses that never arrived are worth another try."""
    status = error.status or 0
    return status == 0 or status == 429 or status >= 500


class BrevoEmailSender(EmailSender):
    """Transactional email through the Brevo (Sendinblue) API.

    With a template id the variables are passed as template params; without
    one a minimal OTP body is rendered locally.
    """

    def __init__(self, api_key: str, from_email: str, from_name: str,
                 timeout: float = 30.0, max_retries: int = 3, backoff: float = 0.5) -> None:
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        if not api_key:
            logger.warning("BREVO_API_KEY not configured - OTP emails cannot be delivered")
            self.transactional_emails_api = None
            return

        configuration = sib_api_v3_sdk.Configuration()
        configuration.api_key["api-key"] = api_key
        self.transactional_emails_api = sib_api_v3_sdk.TransactionalEmailsApi(
            sib_api_v3_sdk.ApiClient(configuration)
        )

    async def send(self, to: str, subject: str, template_id: Optional[int], variables: Dict[str, str]) -> None:
        if self.transactional_emails_api is None:
            raise EmailDeliveryError("Email provider is not configured")

        kwargs = {
            "to": [sib_api_v3_sdk.SendSmtpEmailTo(email=to, name=variables.get("name"))],
            "sender": sib_api_v3_sdk.SendSmtpEmailSender(name=self.from_name, email=self.from_email),
            "subject": subject,
        }
        if template_id is not None:
            kwargs["template_id"] = template_id
            kwargs["params"] = variables
        else:
            kwargs["html_content"] = FALLBACK_OTP_HTML.format(
                name=variables.get("name", ""), otp=variables.get("otp", "")
            )
        await self._send_with_retry(sib_api_v3_sdk.SendSmtpEmail(**kwargs), to)

    async def _send_with_retry(self, email: "sib_api_v3_sdk.SendSmtpEmail", recipient: str) -> None:
        error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                # The SDK is blocking
                await asyncio.wait_for(
                    asyncio.to_thread(self.transactional_emails_api.send_transac_email, email),
                    timeout=self.timeout,
                )
                logger.info(f"Email sent to {recipient}")
                return
            except asyncio.TimeoutError as e:
                # The thread keeps running and may still deliver; never resend after a timeout
                logger.warning(f"Email send timed out after {self.timeout}s for {recipient}")
                raise EmailDeliveryError(f"Timed out sending email to {recipient}") from e
            except ApiException as e:
                if not is_retryable(e):
                    logger.warning(f"Email rejected for {recipient}: {e.status} {e.reason}")
                    raise EmailDeliveryError(f"Email to {recipient} was rejected") from e
                logger.warning(f"Email API error (attempt {attempt + 1}/{self.max_retries}) for {recipient}: {e}")
                error = e
            except Exception as e:
                logger.warning(f"Email send error (attempt {attempt + 1}/{self.max_retries}) for {recipient}: {e}")
                error = e

            if attempt < self.max_retries - 1:
                await asyncio.sleep((2 ** attempt) * self.backoff)

        raise EmailDeliveryError(f"Failed to send email to {recipient}") from error
