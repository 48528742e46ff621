"""
Email client for service-to-service email delivery.

Rendering and delivery live in the Communications Service; other services post
a template id plus its data. Requests authenticate with a short-lived
service-role JWT.

Usage:
    from libs.common.emails.client import get_email_client

    await get_email_client().send_template(
        template_type="store_order_invoice",
        to_email="user@example.com",
        template_data={"order_code": "FSH-2024-004821"},
    )
"""

from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    """The Communications Service could not accept an email."""


class EmailClient:
    """HTTP client for the Communications Service email API."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = base_url or settings.COMMUNICATIONS_SERVICE_URL
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    def _get_auth_headers(self) -> dict[str, str]:
        from libs.auth.dependencies import service_role_jwt

        token = service_role_jwt("email_client")
        return {"Authorization": f"Bearer {token}"}

    async def send_template(
        self,
        template_type: str,
        to_email: str,
        template_data: dict[str, Any],
    ) -> None:
        """
        Send a templated email.

        Raises:
            EmailDeliveryError: the service was unreachable or rejected the request.
        """
        payload = {
            "template_type": template_type,
            "to_email": to_email,
            "template_data": template_data,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/template",
                    json=payload,
                    headers=self._get_auth_headers(),
                )
        except httpx.RequestError as e:
            raise EmailDeliveryError(
                f"Communications Service unreachable for '{template_type}': {e}"
            ) from e

        if response.status_code != 200:
            raise EmailDeliveryError(
                f"Template email API returned {response.status_code}: {response.text}"
            )
        if not response.json().get("success", False):
            raise EmailDeliveryError(f"Template email '{template_type}' was not sent")

        logger.info("Sent '%s' email to %s", template_type, to_email)


# Singleton instance for convenience
_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the singleton EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client
