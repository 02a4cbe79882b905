"""
Balance payment link collaborator.

The payments service owns checkout-session creation and the email that
carries the link; the engine only asks for a link for a booking.
"""

import logging
from typing import Optional

import httpx

from ..config import COLLABORATOR_TIMEOUT_SECONDS, PAYMENT_LINK_TOKEN, PAYMENT_LINK_URL
from ..exceptions import CollaboratorError

logger = logging.getLogger(__name__)


class PaymentLinkClient:
    def __init__(
        self,
        url: str = PAYMENT_LINK_URL,
        token: Optional[str] = PAYMENT_LINK_TOKEN,
        timeout: float = COLLABORATOR_TIMEOUT_SECONDS,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["x-backend-token"] = self.token
        return headers

    async def create_balance_payment_link(self, booking_id: int) -> dict:
        """Returns {"payment_url": ...}; raises CollaboratorError on any failure"""
        logger.info(f"💳 Requesting balance payment link for booking {booking_id}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http_client:
                response = await http_client.post(
                    self.url, json={"booking_id": booking_id}, headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Payment link request failed for booking {booking_id}: {e}")
            raise CollaboratorError(
                "Failed to create balance payment link", booking_id=booking_id
            ) from e

        if response.status_code >= 400:
            logger.error(
                f"❌ Payment link service returned {response.status_code} for booking "
                f"{booking_id}: {response.text}"
            )
            raise CollaboratorError(
                "Failed to create balance payment link",
                booking_id=booking_id,
                status_code=response.status_code,
            )

        payload = response.json()
        payment_url = payload.get("payment_url")
        if not payment_url:
            raise CollaboratorError(
                "Payment link service returned no payment_url", booking_id=booking_id
            )

        logger.info(f"✅ Balance payment link created for booking {booking_id}")
        return {"payment_url": payment_url}
