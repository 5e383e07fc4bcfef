"""Assessment session state machine.

Drives one session through Stage 1 (typing, reading, grammar) and Stage 2
(voice, writing, SJT). Proctoring violations and section timeouts arrive as
queued triggers and are applied one at a time under a lock; a violation
pending at the same instant as a timeout is applied first.
"""
import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional

from talent_screen.config import settings
from talent_screen.errors import (
    AssessmentError, FullscreenRequired, InvalidTransition, ScoringOracleFailure,
    SectionAlreadyCompleted, SectionNotAvailable, SessionExpired, SessionInvalid
)
from talent_screen.models.attempts import (
    ATTEMPT_TYPES, GrammarAttempt, ReadingAttempt, SectionAttempt, SjtAttempt,
    TypingAttempt, VoiceAttempt, WritingAttempt
)
from talent_screen.models.events import VIOLATION_MESSAGES, ProctoringEvent, ProctoringEventType
from talent_screen.models.media import CapturePurpose, SECURITY_CONSTRAINTS, VOICE_CONSTRAINTS
from talent_screen.models.results import ForcedResult, TypingResult, VoiceScores, WritingScores
from talent_screen.models.section import (
    ALL_SECTIONS, STAGE_SECTIONS, AssessmentState, SectionKind, SectionRecord, SectionStatus, Stage
)
from talent_screen.models.session import AssessmentOutcome, Notice, NoticeKind, OutcomeReason, SessionRecord
from talent_screen.services import scoring
from talent_screen.services.collaborators import ResultsSubmitter, ScoringOracle, SessionInvalidator, SessionValidator
from talent_screen.services.media_capture import DeviceRegistry, MediaCaptureController, MediaDevice, ObjectUrlRegistry
from talent_screen.services.proctoring import ProctoringMonitor
from talent_screen.services.session_store import SessionStore
from talent_screen.services.signals import SignalBus
from talent_screen.services.typing_metrics import compute_typing_metrics, typing_passed
from talent_screen.utils.question_bank import DEFAULT_TYPING_TEXT, WRITING_TASKS

logger = logging.getLogger(__name__)


class MachineEvent(str, Enum):
    ENTER_STAGE1 = "enter_stage1"
    STAGE1_DONE = "stage1_done"
    ENTER_STAGE2 = "enter_stage2"
    STAGE2_DONE = "stage2_done"
    FINALIZE = "finalize"
    VIOLATION = "violation"


TRANSITIONS: Dict[tuple, AssessmentState] = {
    (AssessmentState.NOT_STARTED, MachineEvent.ENTER_STAGE1): AssessmentState.STAGE1_ACTIVE,
    (AssessmentState.STAGE1_ACTIVE, MachineEvent.STAGE1_DONE): AssessmentState.STAGE1_GATED,
    (AssessmentState.STAGE1_GATED, MachineEvent.ENTER_STAGE2): AssessmentState.STAGE2_ACTIVE,
    (AssessmentState.STAGE1_GATED, MachineEvent.FINALIZE): AssessmentState.COMPLETE,
    (AssessmentState.STAGE2_ACTIVE, MachineEvent.STAGE2_DONE): AssessmentState.STAGE2_GATED,
    (AssessmentState.STAGE2_GATED, MachineEvent.FINALIZE): AssessmentState.COMPLETE,
    (AssessmentState.STAGE1_ACTIVE, MachineEvent.VIOLATION): AssessmentState.COMPLETE,
    (AssessmentState.STAGE2_ACTIVE, MachineEvent.VIOLATION): AssessmentState.COMPLETE,
}

STAGE_ENTRY = {
    Stage.STAGE_1: (MachineEvent.ENTER_STAGE1, AssessmentState.STAGE1_ACTIVE),
    Stage.STAGE_2: (MachineEvent.ENTER_STAGE2, AssessmentState.STAGE2_ACTIVE),
}

STAGE_DONE = {
    Stage.STAGE_1: MachineEvent.STAGE1_DONE,
    Stage.STAGE_2: MachineEvent.STAGE2_DONE,
}

SECTION_TITLES = {
    SectionKind.TYPING: "Typing Test",
    SectionKind.READING: "Reading Comprehension",
    SectionKind.GRAMMAR: "Grammar & Writing",
    SectionKind.VOICE: "Voice Assessment",
    SectionKind.WRITING: "Writing Assessment",
    SectionKind.SJT: "Situational Judgment",
}


class TriggerKind(IntEnum):
    # Lower value is applied first
    VIOLATION = 0
    TIMEOUT = 1


@dataclass(order=True)
class Trigger:
    priority: int
    seq: int
    kind: TriggerKind = field(compare=False)
    section: Optional[SectionKind] = field(default=None, compare=False)
    violation: Optional[ProctoringEventType] = field(default=None, compare=False)


def section_passed(kind: SectionKind, result: Optional[Dict[str, Any]]) -> bool:
    if not result:
        return False
    if kind == SectionKind.GRAMMAR and "overall_passed" in result:
        return bool(result["overall_passed"])
    return bool(result.get("passed", False))


def section_score(kind: SectionKind, result: Optional[Dict[str, Any]]) -> float:
    """Headline score of a section result, used by the stage 2 gate."""
    if not result:
        return 0.0
    partial = result.get("partial") or result
    if kind == SectionKind.VOICE:
        return float(partial.get("overall", 0))
    if kind == SectionKind.WRITING:
        return float(partial.get("overall_writing_score", 0))
    return float(partial.get("score", 0))


class AssessmentStateMachine:
    """Single owner of one session's assessment state."""

    def __init__(
        self,
        record: SessionRecord,
        store: SessionStore,
        validator: SessionValidator,
        invalidator: SessionInvalidator,
        submitter: ResultsSubmitter,
        oracle: ScoringOracle,
        device: MediaDevice,
        clock: Callable[[], datetime] = datetime.utcnow,
        time_limits: Optional[Dict[str, int]] = None,
        force_completed_passes: Optional[bool] = None,
        optimistic_fallback_scores: Optional[bool] = None,
        warning_threshold: Optional[int] = None,
    ):
        self.record = record
        self.store = store
        self.validator = validator
        self.invalidator = invalidator
        self.submitter = submitter
        self.oracle = oracle
        self.clock = clock
        self.time_limits = time_limits or settings.section_time_limits
        self.force_completed_passes = (
            settings.force_completed_passes if force_completed_passes is None else force_completed_passes
        )
        self.optimistic_fallback_scores = (
            settings.optimistic_fallback_scores if optimistic_fallback_scores is None else optimistic_fallback_scores
        )

        self.bus = SignalBus()
        self.monitor = ProctoringMonitor(
            self.bus,
            on_violation=self.on_violation,
            on_event=self.on_event,
            warning_threshold=settings.proctoring_warning_threshold if warning_threshold is None else warning_threshold,
            clock=clock,
        )
        self.devices = DeviceRegistry()
        self.urls = ObjectUrlRegistry()
        self.device = device
        self.captures = {
            purpose: MediaCaptureController(
                purpose, device, self.devices, self.urls,
                chunk_seconds=settings.media_chunk_seconds, clock=clock
            )
            for purpose in CapturePurpose
        }

        self._lock = asyncio.Lock()
        self._pending: List[Trigger] = []
        self._seq = itertools.count()
        self._generations: Dict[SectionKind, int] = {kind: 0 for kind in ALL_SECTIONS}
        self._attempts: Dict[SectionKind, SectionAttempt] = {}

        for kind in ALL_SECTIONS:
            if kind not in self.record.sections:
                self.record.sections[kind] = SectionRecord(kind=kind, time_limit=self.time_limits[kind.value])
        for kind, data in self.record.attempts.items():
            self._attempts[kind] = ATTEMPT_TYPES[kind](**data)

    # Read-only views

    @property
    def session_id(self) -> str:
        return self.record.session_id

    @property
    def state(self) -> AssessmentState:
        return self.record.state

    @property
    def sections(self) -> Dict[SectionKind, SectionRecord]:
        return self.record.sections

    @property
    def active_section(self) -> Optional[SectionKind]:
        for kind in ALL_SECTIONS:
            if self.record.sections[kind].status == SectionStatus.ACTIVE:
                return kind
        return None

    @property
    def current_section(self) -> Optional[SectionKind]:
        """Next section the candidate is expected to take, if any."""
        if self.record.state == AssessmentState.COMPLETE:
            return None
        for kind in ALL_SECTIONS:
            if not self.record.sections[kind].status.is_terminal:
                return kind
        return None

    def attempt(self, kind: SectionKind) -> Optional[SectionAttempt]:
        return self._attempts.get(kind)

    def remaining_seconds(self, kind: SectionKind) -> int:
        section = self.record.sections[kind]
        if section.status != SectionStatus.ACTIVE or section.started_at is None:
            return section.time_limit if section.status == SectionStatus.NOT_STARTED else 0
        elapsed = (self.clock() - section.started_at).total_seconds()
        return max(0, int(section.time_limit - elapsed))

    # Restore

    @classmethod
    async def restore(cls, record: SessionRecord, **kwargs) -> "AssessmentStateMachine":
        """Rebuild a machine from a persisted record.

        Terminal sections stay closed. An active section resumes with the time
        it has left; if none is left, the next tick times it out.
        """
        machine = cls(record, **kwargs)
        active = machine.active_section
        if active is not None and machine.record.state != AssessmentState.COMPLETE:
            machine._generations[active] += 1
            machine.monitor.arm()
            try:
                await machine.captures[CapturePurpose.SECURITY].start(SECURITY_CONSTRAINTS)
            except AssessmentError as e:
                logger.warning(f"Security recording not resumed for {machine.session_id}: {e.message}")
            logger.info(
                f"Resumed {active.value} for session {machine.session_id} "
                f"with {machine.remaining_seconds(active)}s remaining"
            )
        return machine

    # Stage entry

    async def enter_stage(self, stage: Stage) -> AssessmentState:
        async with self._lock:
            await self._apply_pending()
            await self._enter_stage(stage)
            await self._persist()
            return self.record.state

    async def _enter_stage(self, stage: Stage) -> None:
        event, target = STAGE_ENTRY[stage]
        if self.record.state == target:
            return
        if self.record.state == AssessmentState.COMPLETE or self.record.assessment_exited:
            raise SectionAlreadyCompleted("Your assessment was previously submitted. You cannot access it again.")
        if stage == Stage.STAGE_2 and not self.record.gate_results.get(Stage.STAGE_1):
            raise SectionNotAvailable("You must pass Stage 1 before starting Stage 2.")
        if (self.record.state, event) not in TRANSITIONS:
            raise SectionNotAvailable(f"{stage.value} is not available yet.")

        await self._guard_session()
        self._transition(event)

    async def _guard_session(self) -> None:
        try:
            validation = await self.validator.validate_session(self.session_id)
        except Exception as e:
            logger.error(f"Session validation failed for {self.session_id}: {e}")
            validation = None

        if validation is not None and validation.valid:
            return

        message = validation.message if validation is not None and validation.message else None
        self.record.session.is_valid = False
        self.record.session.invalidated_at = self.clock()
        if validation is not None and validation.expired:
            self.record.session.invalidation_reason = "Session expired"
            self._notify(NoticeKind.SESSION_EXPIRED, message or SessionExpired.default_message)
            await self._persist()
            raise SessionExpired(message)
        self.record.session.invalidation_reason = message or "Session invalid"
        self._notify(NoticeKind.SESSION_EXPIRED, message or SessionInvalid.default_message)
        await self._persist()
        raise SessionInvalid(message)

    def _transition(self, event: MachineEvent) -> None:
        key = (self.record.state, event)
        if key not in TRANSITIONS:
            raise InvalidTransition(f"Cannot {event.value} from {self.record.state.value}.")
        previous = self.record.state
        self.record.state = TRANSITIONS[key]
        logger.info(f"Session {self.session_id}: {previous.value} -> {self.record.state.value}")

    # Section lifecycle

    async def start_section(
        self,
        kind: SectionKind,
        fullscreen: bool = True,
        visible: bool = True,
        typing_text: Optional[str] = None,
    ) -> SectionRecord:
        """Start a section. Stage entry happens implicitly for its first section."""
        async with self._lock:
            await self._apply_pending()

            if self.record.assessment_exited or self.record.state == AssessmentState.COMPLETE:
                raise SectionAlreadyCompleted("Your assessment was previously submitted. You cannot access it again.")

            section = self.record.sections[kind]
            if section.status.is_terminal:
                raise SectionAlreadyCompleted()
            if section.status == SectionStatus.ACTIVE:
                raise InvalidTransition(f"The {SECTION_TITLES[kind]} is already in progress.")
            if self.active_section is not None:
                raise InvalidTransition(f"Finish the {SECTION_TITLES[self.active_section]} first.")

            for earlier in STAGE_SECTIONS[kind.stage]:
                if earlier == kind:
                    break
                if not self.record.sections[earlier].status.is_terminal:
                    raise SectionNotAvailable(f"Please complete the {SECTION_TITLES[earlier]} first.")

            if not fullscreen:
                raise FullscreenRequired()

            _, stage_state = STAGE_ENTRY[kind.stage]
            if self.record.state != stage_state:
                await self._enter_stage(kind.stage)
            else:
                await self._guard_session()

            if kind == SectionKind.VOICE:
                # Probe the microphone so a refusal blocks the start
                stream = await self.device.acquire(VOICE_CONSTRAINTS)
                stream.stop_all()

            await self.captures[CapturePurpose.SECURITY].start(SECURITY_CONSTRAINTS)

            section.status = SectionStatus.ACTIVE
            section.started_at = self.clock()
            self._generations[kind] += 1
            if kind == SectionKind.TYPING:
                self._attempts[kind] = TypingAttempt(reference_text=typing_text or DEFAULT_TYPING_TEXT)
            else:
                self._attempts[kind] = ATTEMPT_TYPES[kind]()
            self.monitor.arm(fullscreen=fullscreen, visible=visible)

            logger.info(f"[{section.started_at.isoformat()}] Session {self.session_id} started {kind.value}")
            await self._persist()
            return section

    async def complete_section(self, kind: SectionKind, answers: Optional[Dict[str, Any]] = None) -> SectionRecord:
        """Voluntary submission of the active section."""
        async with self._lock:
            await self._apply_pending()
            section = self.record.sections[kind]
            if section.status.is_terminal:
                raise SectionAlreadyCompleted()
            if section.status != SectionStatus.ACTIVE:
                raise SectionNotAvailable(f"The {SECTION_TITLES[kind]} has not been started.")

            if answers:
                self._merge_answers(kind, answers)
            await self._finish_section(kind, SectionStatus.COMPLETED, self._section_result(kind))
            return section

    def _merge_answers(self, kind: SectionKind, answers: Dict[str, Any]) -> None:
        attempt = self._attempts[kind]
        if isinstance(attempt, TypingAttempt):
            if "text" in answers:
                attempt.record_input(answers["text"], float(answers.get("at_ms", 0)))
            return
        if isinstance(attempt, GrammarAttempt) and "writing_response" in answers:
            attempt.write(answers["writing_response"])
        if isinstance(attempt, SjtAttempt):
            for scenario_id, rationale in (answers.get("rationales") or {}).items():
                attempt.explain(scenario_id, rationale)
        if isinstance(attempt, (ReadingAttempt, GrammarAttempt, SjtAttempt)):
            for question_id, option in (answers.get("answers") or {}).items():
                attempt.answer(question_id, int(option))

    def _section_result(self, kind: SectionKind) -> Dict[str, Any]:
        attempt = self._attempts[kind]
        if isinstance(attempt, TypingAttempt):
            section = self.record.sections[kind]
            elapsed = (self.clock() - section.started_at).total_seconds()
            elapsed = max(0.0, min(float(section.time_limit), elapsed))
            metrics = compute_typing_metrics(attempt.reference_text, attempt.transcript, elapsed, attempt.keystrokes)
            passed = typing_passed(metrics, settings.typing_min_wpm, settings.typing_min_accuracy)
            return TypingResult(metrics=metrics, passed=passed).model_dump(mode="json")
        if isinstance(attempt, ReadingAttempt):
            return scoring.score_reading(attempt.answers).model_dump(mode="json")
        if isinstance(attempt, GrammarAttempt):
            return scoring.score_grammar(attempt.answers, attempt.writing_response).model_dump(mode="json")
        if isinstance(attempt, SjtAttempt):
            return scoring.score_sjt(attempt.selections()).model_dump(mode="json")
        if isinstance(attempt, VoiceAttempt):
            return scoring.aggregate_voice(attempt.prompt_scores).model_dump(mode="json")
        if isinstance(attempt, WritingAttempt):
            return scoring.aggregate_writing(attempt.scores).model_dump(mode="json")
        raise InvalidTransition(f"No scorer for {kind.value}")

    async def _finish_section(self, kind: SectionKind, status: SectionStatus, result: Dict[str, Any], timed_out: bool = False) -> None:
        section = self.record.sections[kind]
        section.status = status
        section.completed_at = self.clock()
        section.timed_out = timed_out
        section.result = result
        attempt = self._attempts.get(kind)
        if attempt is not None:
            attempt.lock()

        self._teardown_section()
        logger.info(f"[{section.completed_at.isoformat()}] Session {self.session_id} {status.value} {kind.value}")
        await self._persist()
        await self._submit(kind, result)

        if status == SectionStatus.COMPLETED and kind == STAGE_SECTIONS[kind.stage][-1]:
            await self._gate(kind.stage)

    def _teardown_section(self) -> None:
        self.monitor.disarm()
        for capture in self.captures.values():
            recording = capture.stop()
            if recording is not None:
                capture.release(recording)

    async def _gate(self, stage: Stage) -> None:
        sections = self.record.sections
        if stage == Stage.STAGE_1:
            summary = scoring.gate_stage1(
                section_passed(SectionKind.TYPING, sections[SectionKind.TYPING].result),
                section_passed(SectionKind.READING, sections[SectionKind.READING].result),
                section_passed(SectionKind.GRAMMAR, sections[SectionKind.GRAMMAR].result),
            )
            passed = summary.stage1_passed
        else:
            summary = scoring.gate_stage2(
                section_score(SectionKind.VOICE, sections[SectionKind.VOICE].result),
                section_passed(SectionKind.VOICE, sections[SectionKind.VOICE].result),
                section_score(SectionKind.WRITING, sections[SectionKind.WRITING].result),
                section_passed(SectionKind.WRITING, sections[SectionKind.WRITING].result),
                section_score(SectionKind.SJT, sections[SectionKind.SJT].result),
                section_passed(SectionKind.SJT, sections[SectionKind.SJT].result),
            )
            passed = summary.stage2_passed

        self.record.gate_results[stage] = passed
        self.record.summaries[stage] = summary.model_dump(mode="json")
        self._transition(STAGE_DONE[stage])
        logger.info(f"Session {self.session_id} {stage.value} gate: {'passed' if passed else 'failed'}")

        if stage == Stage.STAGE_1 and passed:
            self._notify(NoticeKind.INFO, "Congratulations! You have passed Stage 1. You can now continue to Stage 2.")
            await self._persist()
        elif stage == Stage.STAGE_1:
            await self._finalize(
                OutcomeReason.STAGE1_FAILED,
                "Thank you for completing Stage 1. Unfortunately you did not meet the requirements to continue.",
            )
        else:
            await self._finalize(OutcomeReason.COMPLETED, "Thank you for completing the assessment.")

    async def _finalize(self, reason: OutcomeReason, message: str) -> None:
        self.record.outcome = AssessmentOutcome(reason=reason, message=message, at=self.clock())
        self.record.assessment_exited = True
        if self.record.state != AssessmentState.COMPLETE:
            self._transition(MachineEvent.FINALIZE)
        self._invalidate_locally(reason.value)
        await self._persist()
        await self._invalidate_remote(reason.value)

    # Stage-specific operations

    async def record_typing(self, text: str, at_ms: Optional[float] = None) -> TypingAttempt:
        async with self._lock:
            attempt = self._active_attempt(SectionKind.TYPING)
            if at_ms is None:
                at_ms = (self.clock() - self.record.sections[SectionKind.TYPING].started_at).total_seconds() * 1000
            attempt.record_input(text, at_ms)
            await self._persist()
            return attempt

    async def answer(self, kind: SectionKind, question_id: str, option: int) -> None:
        async with self._lock:
            attempt = self._active_attempt(kind)
            if not hasattr(attempt, "answer"):
                raise InvalidTransition(f"The {SECTION_TITLES[kind]} has no multiple-choice questions.")
            attempt.answer(question_id, option)
            await self._persist()

    async def go_to_page(self, page: int) -> ReadingAttempt:
        async with self._lock:
            attempt = self._active_attempt(SectionKind.READING)
            attempt.go_to_page(page)
            await self._persist()
            return attempt

    async def write(self, kind: SectionKind, text: str, task_id: Optional[str] = None) -> None:
        async with self._lock:
            attempt = self._active_attempt(kind)
            if isinstance(attempt, GrammarAttempt):
                attempt.write(text)
            elif isinstance(attempt, WritingAttempt):
                attempt.write(task_id or "", text)
            else:
                raise InvalidTransition(f"The {SECTION_TITLES[kind]} has no written answers.")
            await self._persist()

    async def start_voice_recording(self) -> Dict[str, Any]:
        """Open the microphone for the current voice prompt."""
        async with self._lock:
            attempt = self._active_attempt(SectionKind.VOICE)
            if attempt.finished:
                raise InvalidTransition("All voice prompts have been answered.")
            await self.captures[CapturePurpose.VOICE_ANSWER].start(VOICE_CONSTRAINTS)
            attempt.recording = True
            return attempt.current_prompt

    def feed_media(self, purpose: CapturePurpose, data: bytes, at: Optional[datetime] = None) -> None:
        self.captures[purpose].feed(data, at)

    async def stop_voice_recording(self) -> Optional[VoiceScores]:
        """Finish the current prompt and score it.

        The oracle is awaited outside the lock; if the section is no longer the
        same active attempt when it answers, the score is dropped.
        """
        async with self._lock:
            attempt = self._active_attempt(SectionKind.VOICE)
            capture = self.captures[CapturePurpose.VOICE_ANSWER]
            recording = capture.stop()
            attempt.recording = False
            if recording is None:
                raise InvalidTransition("No voice recording in progress.")
            prompt = attempt.current_prompt
            generation = self._generations[SectionKind.VOICE]

        try:
            scores = await self.oracle.score_voice(recording.blob, prompt["text"], prompt["type"])
        except ScoringOracleFailure as e:
            logger.error(f"Voice scoring failed for {self.session_id}: {e.message}")
            scores = scoring.fallback_voice_scores(self.optimistic_fallback_scores)
            self._notify(NoticeKind.SCORING_FALLBACK, e.message, SectionKind.VOICE)
        finally:
            capture.release(recording)

        async with self._lock:
            if not self._is_current(SectionKind.VOICE, generation):
                logger.info(f"Ignoring late voice score for {self.session_id}")
                return None
            attempt.record_score(scores)
            if attempt.finished:
                await self._finish_section(SectionKind.VOICE, SectionStatus.COMPLETED, self._section_result(SectionKind.VOICE))
            else:
                await self._persist()
            return scores

    async def submit_writing_task(self, task_id: str, text: Optional[str] = None) -> Optional[WritingScores]:
        """Score one writing task; the section completes after the last one."""
        async with self._lock:
            attempt = self._active_attempt(SectionKind.WRITING)
            if text is not None:
                attempt.write(task_id, text)
            task = next((t for t in WRITING_TASKS if t["id"] == task_id), None)
            if task is None:
                raise InvalidTransition(f"Unknown writing task: {task_id}")
            response = attempt.responses.get(task_id, "")
            generation = self._generations[SectionKind.WRITING]

        try:
            scores = await self.oracle.score_writing(response, task["prompt"], task_id)
        except ScoringOracleFailure as e:
            logger.error(f"Writing scoring failed for {self.session_id}: {e.message}")
            scores = scoring.fallback_writing_scores(self.optimistic_fallback_scores)
            self._notify(NoticeKind.SCORING_FALLBACK, e.message, SectionKind.WRITING)

        async with self._lock:
            if not self._is_current(SectionKind.WRITING, generation):
                logger.info(f"Ignoring late writing score for {self.session_id}")
                return None
            attempt.record_score(task_id, scores)
            if attempt.finished:
                await self._finish_section(SectionKind.WRITING, SectionStatus.COMPLETED, self._section_result(SectionKind.WRITING))
            else:
                await self._persist()
            return scores

    def _active_attempt(self, kind: SectionKind) -> Any:
        section = self.record.sections[kind]
        if section.status.is_terminal:
            raise SectionAlreadyCompleted()
        if section.status != SectionStatus.ACTIVE:
            raise SectionNotAvailable(f"The {SECTION_TITLES[kind]} has not been started.")
        return self._attempts[kind]

    def _is_current(self, kind: SectionKind, generation: int) -> bool:
        return (
            self._generations[kind] == generation
            and self.record.sections[kind].status == SectionStatus.ACTIVE
        )

    # Triggers

    def on_violation(self, violation: ProctoringEventType) -> None:
        """Monitor callback. Queued; applied by the next ``drain``."""
        self.enqueue(TriggerKind.VIOLATION, violation=violation)

    def on_event(self, event: ProctoringEvent) -> None:
        self.record.events.append(event)

    def enqueue(
        self,
        kind: TriggerKind,
        section: Optional[SectionKind] = None,
        violation: Optional[ProctoringEventType] = None,
    ) -> None:
        self._pending.append(Trigger(int(kind), next(self._seq), kind, section, violation))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Apply queued triggers, violations first."""
        async with self._lock:
            await self._apply_pending()

    async def tick(self) -> None:
        """Queue a timeout for an active section whose countdown reached zero."""
        active = self.active_section
        if active is not None:
            section = self.record.sections[active]
            elapsed = (self.clock() - section.started_at).total_seconds()
            if elapsed >= section.time_limit:
                self.enqueue(TriggerKind.TIMEOUT, section=active)
        await self.drain()

    async def _apply_pending(self) -> None:
        while self._pending:
            self._pending.sort()
            trigger = self._pending.pop(0)
            if trigger.kind == TriggerKind.VIOLATION:
                await self._apply_violation(trigger.violation)
            else:
                await self._apply_timeout(trigger.section)

    async def _apply_timeout(self, kind: SectionKind) -> None:
        if self.record.sections[kind].status != SectionStatus.ACTIVE:
            logger.debug(f"Timeout for {kind.value} ignored; section not active")
            return

        logger.info(f"Session {self.session_id}: time expired for {kind.value}")
        self._notify(
            NoticeKind.TIMEOUT,
            f"Time's up for the {SECTION_TITLES[kind]}. Your answers have been submitted automatically.",
            kind,
        )
        await self._finish_section(kind, SectionStatus.COMPLETED, self._section_result(kind), timed_out=True)

    async def _apply_violation(self, violation: ProctoringEventType) -> None:
        active = self.active_section
        if active is None:
            logger.info(f"Violation {violation.value} ignored for {self.session_id}; no active section")
            return

        message = VIOLATION_MESSAGES[violation]
        now = self.clock()
        logger.warning(f"[{now.isoformat()}] Session {self.session_id}: {violation.value} during {active.value}")

        partial = self._section_result(active)
        forced = ForcedResult(passed=self.force_completed_passes, reason=violation.value, partial=partial)
        result = {**forced.model_dump(mode="json"), "forced": True}

        section = self.record.sections[active]
        section.status = SectionStatus.FORCE_COMPLETED
        section.completed_at = now
        section.result = result
        self._attempts[active].lock()

        for kind in ALL_SECTIONS:
            other = self.record.sections[kind]
            if not other.status.is_terminal:
                other.status = SectionStatus.FORCE_COMPLETED
                other.locked = True
                other.completed_at = now
                other.result = None
                if kind in self._attempts:
                    self._attempts[kind].lock()

        self._teardown_section()
        self._notify(NoticeKind.VIOLATION, message, active)
        self.record.outcome = AssessmentOutcome(reason=OutcomeReason.SECURITY_VIOLATION, message=message, at=now)
        self.record.assessment_exited = True
        self._transition(MachineEvent.VIOLATION)
        self._invalidate_locally(f"Security violation: {violation.value}")
        await self._persist()

        await self._submit(active, result)
        await self._invalidate_remote(f"Security violation: {violation.value}")

    # Collaborators

    def _invalidate_locally(self, reason: str) -> None:
        session = self.record.session
        session.is_valid = False
        session.invalidated_at = self.clock()
        session.invalidation_reason = reason

    async def _invalidate_remote(self, reason: str) -> None:
        try:
            await self.invalidator.invalidate_session(self.session_id, reason)
        except Exception as e:
            logger.error(f"Error invalidating session {self.session_id}: {e}")

    async def _submit(self, kind: SectionKind, payload: Dict[str, Any]) -> None:
        try:
            await self.submitter.submit(self.session_id, kind, payload)
        except AssessmentError as e:
            logger.error(f"Could not save {kind.value} results for {self.session_id}: {e.message}")
            self._notify(NoticeKind.PERSISTENCE_ERROR, e.message, kind)
            await self._persist()
        except Exception as e:
            logger.error(f"Could not save {kind.value} results for {self.session_id}: {e}")
            self._notify(NoticeKind.PERSISTENCE_ERROR, "Your results could not be saved. You may continue; we will retry later.", kind)
            await self._persist()

    async def _persist(self) -> None:
        stored = await self.store.get(self.session_id)
        if stored is not None and not stored.session.is_valid and self.record.session.is_valid:
            # Invalidation is one-way: keep one made elsewhere since this record was loaded
            session = self.record.session
            session.is_valid = False
            session.invalidated_at = stored.session.invalidated_at
            session.invalidation_reason = stored.session.invalidation_reason
        self.record.attempts = {kind: attempt.model_dump(mode="json") for kind, attempt in self._attempts.items()}
        await self.store.set(self.record)

    def close(self) -> None:
        """Stop proctoring and release every capture device."""
        self._teardown_section()

    def _notify(self, kind: NoticeKind, message: str, section: Optional[SectionKind] = None) -> None:
        self.record.notices.append(Notice(kind=kind, message=message, section=section, at=self.clock()))
