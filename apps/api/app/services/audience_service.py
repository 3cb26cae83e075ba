"""Marketing audience sync via the Mailchimp Marketing API."""

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import TransportError
from app.core.security import subscriber_hash

logger = logging.getLogger(__name__)


class AudienceService:
    """Keeps the marketing audience in step with saved preferences."""

    def __init__(
        self,
        api_key: str | None = None,
        server_prefix: str | None = None,
        list_id: str | None = None,
    ) -> None:
        self.api_key = settings.mailchimp_api_key if api_key is None else api_key
        self.server_prefix = (
            settings.mailchimp_server_prefix if server_prefix is None else server_prefix
        )
        self.list_id = settings.mailchimp_list_id if list_id is None else list_id

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.server_prefix and self.list_id)

    def member_url(self, email: str) -> str:
        return (
            f"https://{self.server_prefix}.api.mailchimp.com/3.0"
            f"/lists/{self.list_id}/members/{subscriber_hash(email)}"
        )

    async def subscribe(self, email: str, industry: str) -> dict[str, Any] | None:
        """Add or update the member, tagging their industry.

        Uses PUT on the member hash so repeated saves are idempotent.
        Returns the provider's member payload, or ``None`` when the
        integration is not configured.

        Raises:
            TransportError: If Mailchimp rejects the request.
        """
        if not self.configured:
            logger.warning("Mailchimp not configured, %s not added to audience", email)
            return None

        payload = {
            "email_address": email,
            "status_if_new": "subscribed",
            "merge_fields": {"INDUSTRY": industry},
        }
        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.put(
                    self.member_url(email),
                    auth=("anystring", self.api_key),
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"Mailchimp request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Mailchimp rejected member update: email=%s status=%s body=%s",
                email,
                response.status_code,
                response.text[:500],
            )
            raise TransportError(
                f"Mailchimp error ({response.status_code})", status_code=response.status_code
            )

        data: dict[str, Any] = response.json()
        logger.info("Audience member synced: email=%s status=%s", email, data.get("status"))
        return data
