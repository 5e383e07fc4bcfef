"""Candidate registration and session validity."""
import logging
import secrets
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

import httpx

from talent_screen.config import settings
from talent_screen.models.session import AssessmentSession, CandidateInfo, SessionRecord
from talent_screen.services.collaborators import SessionInvalidator, SessionValidation, SessionValidator
from talent_screen.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"ses_{int(time.time() * 1000)}_{secrets.token_hex(7)}"


class SessionService(SessionValidator, SessionInvalidator):
    """Registration, validation and invalidation against the session store."""

    def __init__(
        self,
        store: SessionStore,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.ttl = ttl or timedelta(hours=settings.session_ttl_hours)
        self.clock = clock

    async def register(self, candidate: CandidateInfo) -> AssessmentSession:
        """Create a fresh session for a candidate."""
        session = AssessmentSession(
            session_id=generate_session_id(),
            created_at=self.clock(),
            candidate=candidate,
        )
        await self.store.set(SessionRecord(session=session))
        logger.info(f"[{session.created_at.isoformat()}] Created session {session.session_id} for candidate {candidate.email}")
        return session

    async def validate_session(self, session_id: Optional[str]) -> SessionValidation:
        now = self.clock()
        if not session_id:
            return SessionValidation(valid=False, message="Your assessment session is not found. Please register again.", timestamp=now)

        try:
            record = await self.store.get(session_id)
        except Exception as e:
            logger.error(f"Error validating session {session_id}: {e}")
            return SessionValidation(valid=False, message="Error validating session", session_id=session_id, timestamp=now)

        if record is None or not record.session.is_valid:
            return SessionValidation(valid=False, message="Session is invalid or expired", session_id=session_id, timestamp=now)

        session = record.session
        if session.is_expired(self.ttl, now):
            session.is_valid = False
            session.invalidated_at = now
            session.invalidation_reason = "Session expired"
            await self.store.set(record)
            return SessionValidation(
                valid=False, message="Session has expired", session_id=session_id,
                created_at=session.created_at, expired=True, timestamp=now
            )

        return SessionValidation(valid=True, session_id=session_id, created_at=session.created_at, timestamp=now)

    async def invalidate_session(self, session_id: str, reason: str) -> None:
        try:
            record = await self.store.get(session_id)
            if record is None:
                logger.warning(f"No active session found to invalidate: {session_id}")
                return
            record.session.is_valid = False
            record.session.invalidated_at = self.clock()
            record.session.invalidation_reason = reason
            await self.store.set(record)
            logger.info(f"[{record.session.invalidated_at.isoformat()}] Invalidated session {session_id}. Reason: {reason or 'Not specified'}")
        except Exception as e:
            logger.error(f"Error invalidating session {session_id}: {e}")


class HttpSessionValidator(SessionValidator, SessionInvalidator):
    """Session collaborator reached over HTTP."""

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.transport = transport

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=10.0)

    async def validate_session(self, session_id: Optional[str]) -> SessionValidation:
        if not session_id:
            return SessionValidation(valid=False, message="Your assessment session is not found. Please register again.")

        async with self.client() as client:
            try:
                response = await client.get(f"{self.base_url}/api/v1/sessions/{session_id}/validate")
                data = response.json()
                if response.status_code != 200:
                    return SessionValidation(valid=False, message=data.get("message") or data.get("detail"), session_id=session_id)
                return SessionValidation(**data)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Could not verify session {session_id}: {e}")
                return SessionValidation(
                    valid=False,
                    message="Could not verify your session with the server. Please try again.",
                    session_id=session_id,
                )

    async def invalidate_session(self, session_id: str, reason: str) -> None:
        async with self.client() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/api/v1/sessions/{session_id}/invalidate",
                    json={"reason": reason}
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Error invalidating session {session_id} through API: {e}")
