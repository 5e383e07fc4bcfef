import asyncio
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from talent_screen.errors import PersistenceFailure, ScoringOracleFailure
from talent_screen.models.results import VoiceScores, WritingScores
from talent_screen.models.session import CandidateInfo
from talent_screen.services.collaborators import ResultsSubmitter, ScoringOracle, SessionInvalidator
from talent_screen.services.media_capture import ClientMediaDevice
from talent_screen.services.session_service import SessionService
from talent_screen.services.session_store import InMemorySessionStore
from talent_screen.services.state_machine import AssessmentStateMachine


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeOracle(ScoringOracle):
    def __init__(self):
        self.voice = VoiceScores(
            pronunciation=90, fluency=88, vocabulary=92, grammar=90,
            customer_service_score=90, overall_score=90, passed=True, cefr_level="C1"
        )
        self.writing = WritingScores(score=85, cefr_level="C1", feedback="Clear and polite.")
        self.fail = False
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []

    async def score_voice(self, audio, prompt, task_type):
        self.calls.append(task_type)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ScoringOracleFailure()
        return self.voice

    async def score_writing(self, text, prompt, task_type):
        self.calls.append(task_type)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ScoringOracleFailure()
        return self.writing


class RecordingSubmitter(ResultsSubmitter):
    def __init__(self):
        self.submitted = []
        self.fail = False

    async def submit(self, session_id, kind, payload):
        if self.fail:
            raise PersistenceFailure()
        self.submitted.append((session_id, kind, payload))


class RecordingInvalidator(SessionInvalidator):
    def __init__(self):
        self.calls = []

    async def invalidate_session(self, session_id, reason):
        self.calls.append((session_id, reason))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session_service(store, clock):
    return SessionService(store, ttl=timedelta(hours=3), clock=clock)


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def submitter():
    return RecordingSubmitter()


@pytest.fixture
def invalidator():
    return RecordingInvalidator()


@pytest.fixture
def device():
    return ClientMediaDevice(camera_granted=True, microphone_granted=True)


@pytest.fixture
def candidate():
    return CandidateInfo(full_name="Ada Lovelace", email="ada@acme-support.com", phone="+15550100")


@pytest.fixture
def machine_options(store, session_service, invalidator, submitter, oracle, device, clock):
    return dict(
        store=store,
        validator=session_service,
        invalidator=invalidator,
        submitter=submitter,
        oracle=oracle,
        device=device,
        clock=clock,
        force_completed_passes=False,
        optimistic_fallback_scores=False,
        warning_threshold=3,
    )


@pytest.fixture
async def machine(session_service, store, candidate, machine_options):
    session = await session_service.register(candidate)
    record = await store.get(session.session_id)
    return AssessmentStateMachine(record, **machine_options)
