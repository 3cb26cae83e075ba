"""Email delivery service using Resend API."""

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import TransportError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailService:
    """Sends content emails via the Resend API."""

    def __init__(self, api_key: str | None = None, timeout: float = 15.0) -> None:
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.timeout = timeout

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        tags: list[dict[str, str]] | None = None,
    ) -> str | None:
        """Send one HTML email.

        Returns the Resend email ID (``None`` if the response carried none).

        Raises:
            TransportError: If the transport is unconfigured, the request
                fails, or Resend answers with a non-2xx status.
        """
        if not self.api_key:
            raise TransportError("Resend API key not configured")

        payload: dict[str, Any] = {
            "from": f"{settings.mail_from_name} <{settings.mail_from_address}>",
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        if tags:
            payload["tags"] = tags

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as exc:
            logger.error("Error sending email to %s: %s", to_email, exc)
            raise TransportError(f"Mail transport request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Failed to send email: to=%s status=%s body=%s",
                to_email,
                response.status_code,
                response.text[:500],
            )
            raise TransportError(
                f"Mail transport rejected message ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        email_id = response.json().get("id")
        logger.info("Email sent: to=%s id=%s", to_email, email_id)
        return str(email_id) if email_id else None
