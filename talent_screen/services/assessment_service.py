"""Per-process registry of running assessments."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from talent_screen.config import settings
from talent_screen.errors import SessionInvalid
from talent_screen.models.section import AssessmentState
from talent_screen.services.collaborators import ResultsSubmitter, ScoringOracle, SessionInvalidator, SessionValidator
from talent_screen.services.media_capture import ClientMediaDevice
from talent_screen.services.session_store import SessionStore
from talent_screen.services.signals import Signal
from talent_screen.services.state_machine import AssessmentStateMachine

logger = logging.getLogger(__name__)


class AssessmentService:
    """Owns one state machine per session and ticks them from a watchdog task."""

    def __init__(
        self,
        store: SessionStore,
        validator: SessionValidator,
        invalidator: SessionInvalidator,
        submitter: ResultsSubmitter,
        oracle: ScoringOracle,
        clock: Callable[[], datetime] = datetime.utcnow,
        ttl: Optional[timedelta] = None,
        **machine_options: Any,
    ):
        self.store = store
        self.validator = validator
        self.invalidator = invalidator
        self.submitter = submitter
        self.oracle = oracle
        self.clock = clock
        self.ttl = ttl or timedelta(hours=settings.session_ttl_hours)
        self.machine_options = machine_options

        self._machines: Dict[str, AssessmentStateMachine] = {}
        self._devices: Dict[str, ClientMediaDevice] = {}
        self._watchdog: Optional[asyncio.Task] = None

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._machines

    def device(self, session_id: str) -> ClientMediaDevice:
        """Permission state reported by the candidate's browser."""
        if session_id not in self._devices:
            self._devices[session_id] = ClientMediaDevice()
        return self._devices[session_id]

    async def get_machine(self, session_id: str) -> AssessmentStateMachine:
        machine = self._machines.get(session_id)
        if machine is not None:
            return machine

        record = await self.store.get(session_id)
        if record is None:
            raise SessionInvalid("Your assessment session is not found. Please register again.")

        machine = await AssessmentStateMachine.restore(
            record,
            store=self.store,
            validator=self.validator,
            invalidator=self.invalidator,
            submitter=self.submitter,
            oracle=self.oracle,
            device=self.device(session_id),
            clock=self.clock,
            **self.machine_options,
        )
        self._machines[session_id] = machine
        return machine

    async def dispatch_signal(self, session_id: str, signal: Signal, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Deliver a host signal and apply whatever it triggered."""
        machine = await self.get_machine(session_id)
        rejected = machine.bus.dispatch(signal, payload)
        await machine.drain()
        self.release_if_finished(machine)
        return rejected

    def forget(self, session_id: str) -> None:
        machine = self._machines.pop(session_id, None)
        self._devices.pop(session_id, None)
        if machine is not None:
            machine.close()
            logger.info(f"Released assessment for session {session_id}")

    def is_finished(self, machine: AssessmentStateMachine) -> bool:
        """Complete, invalidated or past its TTL: nothing left to tick."""
        session = machine.record.session
        return (
            machine.state == AssessmentState.COMPLETE
            or not session.is_valid
            or session.is_expired(self.ttl, self.clock())
        )

    def release_if_finished(self, machine: AssessmentStateMachine) -> bool:
        if machine.pending or not self.is_finished(machine):
            return False
        self.forget(machine.session_id)
        return True

    async def tick_all(self) -> None:
        for session_id, machine in list(self._machines.items()):
            try:
                await machine.tick()
            except Exception as e:
                logger.error(f"Watchdog tick failed for {session_id}: {e}")
            self.release_if_finished(machine)

    def start_watchdog(self, interval: Optional[float] = None) -> None:
        if self._watchdog is not None:
            return
        self._watchdog = asyncio.create_task(self._run_watchdog(interval or settings.watchdog_interval))
        logger.info("Assessment watchdog started")

    async def stop_watchdog(self) -> None:
        if self._watchdog is None:
            return
        self._watchdog.cancel()
        try:
            await self._watchdog
        except asyncio.CancelledError:
            pass
        self._watchdog = None
        logger.info("Assessment watchdog stopped")

    async def _run_watchdog(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.tick_all()
