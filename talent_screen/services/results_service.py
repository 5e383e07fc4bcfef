"""Results submission."""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from motor.motor_asyncio import AsyncIOMotorDatabase

from talent_screen.errors import PersistenceFailure
from talent_screen.models.section import SectionKind
from talent_screen.services.collaborators import ResultsSubmitter

logger = logging.getLogger(__name__)


class MongoResultsSubmitter(ResultsSubmitter):
    """Stores section results and optionally forwards them to a webhook."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        webhook_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.webhook_url = webhook_url
        self.transport = transport

    async def submit(self, session_id: str, kind: SectionKind, payload: Dict[str, Any]) -> None:
        document = {
            "session_id": session_id,
            "section": kind.value,
            "payload": payload,
            "created_at": datetime.utcnow(),
        }
        try:
            await self.db.section_results.insert_one(document)
        except Exception as e:
            logger.error(f"Error saving {kind.value} results for {session_id}: {e}")
            raise PersistenceFailure() from e

        if self.webhook_url:
            await self._forward(session_id, kind, payload)

    async def _forward(self, session_id: str, kind: SectionKind, payload: Dict[str, Any]) -> None:
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    self.webhook_url,
                    headers={"Content-Type": "application/json"},
                    json={"session_id": session_id, "section": kind.value, "result": payload},
                    timeout=30.0
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Results webhook error: {e.response.status_code} {e.response.text}")
                raise PersistenceFailure() from e
            except httpx.HTTPError as e:
                logger.error(f"Results webhook unreachable: {e}")
                raise PersistenceFailure() from e
