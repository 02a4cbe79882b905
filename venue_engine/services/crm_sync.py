"""
CRM sync collaborator - pushes the current booking snapshot to the CRM so
its workflows see the same lifecycle and host-report state we do.
"""

import logging
from typing import Optional

import httpx

from ..config import COLLABORATOR_TIMEOUT_SECONDS, CRM_SYNC_TOKEN, CRM_SYNC_URL
from ..exceptions import CollaboratorError

logger = logging.getLogger(__name__)


class CrmSyncClient:
    def __init__(
        self,
        url: str = CRM_SYNC_URL,
        token: Optional[str] = CRM_SYNC_TOKEN,
        timeout: float = COLLABORATOR_TIMEOUT_SECONDS,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout

    async def sync_booking_snapshot(self, booking_id: int) -> None:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as http_client:
                response = await http_client.post(
                    self.url, json={"booking_id": booking_id}, headers=headers
                )
        except httpx.HTTPError as e:
            raise CollaboratorError("CRM sync request failed", booking_id=booking_id) from e

        if response.status_code >= 400:
            raise CollaboratorError(
                f"CRM sync failed: {response.text}",
                booking_id=booking_id,
                status_code=response.status_code,
            )
        logger.info(f"✅ CRM snapshot synced for booking {booking_id}")


async def sync_quietly(crm: CrmSyncClient, booking_id: int) -> bool:
    """Fire-and-forget: the state change already happened, a failed sync is only logged"""
    try:
        await crm.sync_booking_snapshot(booking_id)
        return True
    except CollaboratorError as e:
        logger.error(f"❌ CRM sync failed for booking {booking_id}: {e.message}")
        return False
