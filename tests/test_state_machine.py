import asyncio

import pytest

from talent_screen.errors import (
    FullscreenRequired, InvalidTransition, PermissionDenied, SectionAlreadyCompleted,
    SectionNotAvailable, SessionExpired, SessionInvalid
)
from talent_screen.models.events import ProctoringEventType
from talent_screen.models.media import CapturePurpose
from talent_screen.models.section import AssessmentState, SectionKind, SectionStatus, Stage
from talent_screen.models.session import NoticeKind, OutcomeReason
from talent_screen.services.signals import Signal
from talent_screen.services.state_machine import AssessmentStateMachine, TriggerKind
from talent_screen.utils.question_bank import DEFAULT_TYPING_TEXT, GRAMMAR_QUESTIONS, READING_SCENARIOS, SJT_CORRECT_OPTIONS, WRITING_TASKS

READING_ANSWERS = {q["id"]: q["correct_answer"] for s in READING_SCENARIOS for q in s["questions"]}
GRAMMAR_ANSWERS = {q["id"]: q["correct_answer"] for q in GRAMMAR_QUESTIONS}
SJT_ANSWERS = {str(i): option for i, option in enumerate(SJT_CORRECT_OPTIONS)}


async def pass_stage_one(machine, clock):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    clock.advance(60)
    await machine.record_typing(DEFAULT_TYPING_TEXT)
    await machine.complete_section(SectionKind.TYPING)

    await machine.start_section(SectionKind.READING, fullscreen=True)
    await machine.complete_section(SectionKind.READING, {"answers": READING_ANSWERS})

    await machine.start_section(SectionKind.GRAMMAR, fullscreen=True)
    await machine.complete_section(
        SectionKind.GRAMMAR,
        {"answers": GRAMMAR_ANSWERS, "writing_response": "I am sorry your order arrived damaged. " * 3}
    )


async def answer_voice_prompt(machine):
    await machine.start_voice_recording()
    machine.feed_media(CapturePurpose.VOICE_ANSWER, b"spoken answer")
    return await machine.stop_voice_recording()


def statuses(machine):
    return {kind: section.status for kind, section in machine.sections.items()}


async def test_passing_stage_one_unlocks_stage_two(machine, clock):
    await pass_stage_one(machine, clock)

    assert machine.state == AssessmentState.STAGE1_GATED
    assert machine.record.gate_results[Stage.STAGE_1] is True
    assert machine.record.summaries[Stage.STAGE_1]["stage1_passed"] is True
    assert machine.current_section == SectionKind.VOICE


async def test_failed_stage_one_finalizes(machine, clock, store, invalidator):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    clock.advance(60)
    await machine.record_typing("Custmer")
    await machine.complete_section(SectionKind.TYPING)
    for kind in (SectionKind.READING, SectionKind.GRAMMAR):
        await machine.start_section(kind, fullscreen=True)
        await machine.complete_section(kind)

    assert machine.state == AssessmentState.COMPLETE
    assert machine.record.outcome.reason == OutcomeReason.STAGE1_FAILED
    assert (await store.get(machine.session_id)).session.is_valid is False
    assert invalidator.calls

    with pytest.raises(SectionAlreadyCompleted):
        await machine.start_section(SectionKind.VOICE, fullscreen=True)


async def test_full_assessment_completes(machine, clock, submitter):
    await pass_stage_one(machine, clock)

    await machine.start_section(SectionKind.VOICE, fullscreen=True)
    for _ in range(3):
        await answer_voice_prompt(machine)
    assert machine.sections[SectionKind.VOICE].status == SectionStatus.COMPLETED

    await machine.start_section(SectionKind.WRITING, fullscreen=True)
    for task in WRITING_TASKS:
        await machine.submit_writing_task(task["id"], "Thank you for contacting us. " * 5)
    assert machine.sections[SectionKind.WRITING].status == SectionStatus.COMPLETED

    await machine.start_section(SectionKind.SJT, fullscreen=True)
    await machine.complete_section(SectionKind.SJT, {"answers": SJT_ANSWERS})

    assert machine.state == AssessmentState.COMPLETE
    assert machine.record.outcome.reason == OutcomeReason.COMPLETED
    summary = machine.record.summaries[Stage.STAGE_2]
    assert summary["stage2_passed"] is True
    assert summary["overall_score"] == 91.5
    assert len(submitter.submitted) == 6


async def test_sections_run_in_order(machine):
    with pytest.raises(SectionNotAvailable):
        await machine.start_section(SectionKind.READING, fullscreen=True)


async def test_stage_two_needs_passed_stage_one(machine):
    with pytest.raises(SectionNotAvailable):
        await machine.start_section(SectionKind.VOICE, fullscreen=True)
    assert machine.state == AssessmentState.NOT_STARTED


async def test_completed_section_is_never_reopened(machine):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await machine.complete_section(SectionKind.TYPING)

    with pytest.raises(SectionAlreadyCompleted):
        await machine.start_section(SectionKind.TYPING, fullscreen=True)
    with pytest.raises(SectionAlreadyCompleted):
        await machine.record_typing("late input")


async def test_start_requires_fullscreen(machine):
    with pytest.raises(FullscreenRequired):
        await machine.start_section(SectionKind.TYPING, fullscreen=False)

    assert machine.sections[SectionKind.TYPING].status == SectionStatus.NOT_STARTED


async def test_camera_denied_blocks_start(machine, device):
    device.update_permissions(camera=False)

    with pytest.raises(PermissionDenied):
        await machine.start_section(SectionKind.TYPING, fullscreen=True)

    assert machine.sections[SectionKind.TYPING].status == SectionStatus.NOT_STARTED
    assert not machine.monitor.is_armed


async def test_expired_session_blocks_entry(machine, clock):
    clock.advance(4 * 3600)

    with pytest.raises(SessionExpired):
        await machine.start_section(SectionKind.TYPING, fullscreen=True)

    assert machine.state == AssessmentState.NOT_STARTED
    assert machine.record.notices[-1].kind == NoticeKind.SESSION_EXPIRED


async def test_invalidated_session_stays_invalid_after_input(machine, session_service, store):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await session_service.invalidate_session(machine.session_id, "Withdrawn by recruiter")

    await machine.record_typing("The", at_ms=500)

    validation = await session_service.validate_session(machine.session_id)
    assert validation.valid is False
    stored = await store.get(machine.session_id)
    assert stored.session.invalidation_reason == "Withdrawn by recruiter"
    assert stored.attempts[SectionKind.TYPING]["transcript"] == "The"

    await machine.complete_section(SectionKind.TYPING)
    with pytest.raises(SessionInvalid):
        await machine.start_section(SectionKind.READING, fullscreen=True)


async def test_violation_force_completes_everything(machine, submitter, invalidator, store):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await machine.record_typing("Customer service")

    machine.bus.dispatch(Signal.FULLSCREEN_CHANGE, {"fullscreen": False})
    await machine.drain()

    typing = machine.sections[SectionKind.TYPING]
    assert typing.status == SectionStatus.FORCE_COMPLETED
    assert typing.result["passed"] is False
    assert typing.result["reason"] == ProctoringEventType.FULLSCREEN_EXITED.value
    for kind in (SectionKind.READING, SectionKind.GRAMMAR, SectionKind.VOICE, SectionKind.WRITING, SectionKind.SJT):
        assert machine.sections[kind].status == SectionStatus.FORCE_COMPLETED
        assert machine.sections[kind].locked
        assert machine.sections[kind].result is None

    assert machine.state == AssessmentState.COMPLETE
    assert machine.record.outcome.reason == OutcomeReason.SECURITY_VIOLATION
    assert "fullscreen" in machine.record.outcome.message
    assert machine.record.assessment_exited
    assert (await store.get(machine.session_id)).session.is_valid is False
    assert invalidator.calls
    assert submitter.submitted[-1][1] == SectionKind.TYPING
    assert not machine.monitor.is_armed
    assert not machine.captures[CapturePurpose.SECURITY].is_recording

    with pytest.raises(SectionAlreadyCompleted):
        await machine.start_section(SectionKind.READING, fullscreen=True)


async def test_violation_without_active_section_is_ignored(machine):
    machine.on_violation(ProctoringEventType.TAB_HIDDEN)
    await machine.drain()

    assert machine.state == AssessmentState.NOT_STARTED
    assert all(status == SectionStatus.NOT_STARTED for status in statuses(machine).values())


async def test_violation_wins_over_pending_timeout(machine, clock):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    clock.advance(200)

    machine.enqueue(TriggerKind.TIMEOUT, section=SectionKind.TYPING)
    machine.on_violation(ProctoringEventType.TAB_HIDDEN)
    await machine.drain()

    assert machine.sections[SectionKind.TYPING].status == SectionStatus.FORCE_COMPLETED
    assert not any(notice.kind == NoticeKind.TIMEOUT for notice in machine.record.notices)
    assert machine.pending == 0


async def test_repeated_clipboard_use_escalates(machine):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)

    for _ in range(3):
        assert machine.bus.dispatch(Signal.CLIPBOARD, {"action": "paste"})
        await machine.drain()
    assert machine.sections[SectionKind.TYPING].status == SectionStatus.ACTIVE

    machine.bus.dispatch(Signal.CLIPBOARD, {"action": "paste"})
    await machine.drain()

    assert machine.record.outcome.reason == OutcomeReason.SECURITY_VIOLATION
    assert len(machine.record.events) == 4


async def test_timeout_completes_and_advances(machine, clock):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await machine.record_typing("Customer")
    clock.advance(181)

    await machine.tick()

    typing = machine.sections[SectionKind.TYPING]
    assert typing.status == SectionStatus.COMPLETED
    assert typing.timed_out
    assert typing.result["metrics"]["elapsed_seconds"] == 180
    assert machine.record.notices[-1].kind == NoticeKind.TIMEOUT
    assert machine.current_section == SectionKind.READING
    assert not machine.monitor.is_armed


async def test_tick_before_deadline_does_nothing(machine, clock):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    clock.advance(100)

    await machine.tick()

    assert machine.sections[SectionKind.TYPING].status == SectionStatus.ACTIVE
    assert machine.remaining_seconds(SectionKind.TYPING) == 80


async def test_reading_pages_back_and_forth(machine, clock):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await machine.complete_section(SectionKind.TYPING)
    await machine.start_section(SectionKind.READING, fullscreen=True)

    await machine.go_to_page(1)
    attempt = await machine.go_to_page(0)
    assert attempt.page == 0

    with pytest.raises(InvalidTransition):
        await machine.go_to_page(5)


async def test_late_oracle_response_is_dropped(machine, clock, oracle):
    await pass_stage_one(machine, clock)
    await machine.start_section(SectionKind.VOICE, fullscreen=True)

    oracle.gate = asyncio.Event()
    await machine.start_voice_recording()
    machine.feed_media(CapturePurpose.VOICE_ANSWER, b"spoken answer")
    pending = asyncio.create_task(machine.stop_voice_recording())
    while not oracle.calls:
        await asyncio.sleep(0)

    machine.bus.dispatch(Signal.VISIBILITY_CHANGE, {"state": "hidden"})
    await machine.drain()
    oracle.gate.set()

    assert await pending is None
    assert machine.attempt(SectionKind.VOICE).prompt_scores == []
    assert machine.sections[SectionKind.VOICE].status == SectionStatus.FORCE_COMPLETED


async def test_oracle_failure_applies_fallback(machine, clock, oracle):
    await pass_stage_one(machine, clock)
    await machine.start_section(SectionKind.VOICE, fullscreen=True)
    oracle.fail = True

    scores = await answer_voice_prompt(machine)

    assert scores.fallback
    assert scores.overall_score == 0
    assert machine.record.notices[-1].kind == NoticeKind.SCORING_FALLBACK
    assert machine.attempt(SectionKind.VOICE).prompt_index == 1


async def test_microphone_denied_blocks_voice_start(machine, clock, device):
    await pass_stage_one(machine, clock)
    device.update_permissions(microphone=False)

    with pytest.raises(PermissionDenied):
        await machine.start_section(SectionKind.VOICE, fullscreen=True)

    assert machine.sections[SectionKind.VOICE].status == SectionStatus.NOT_STARTED
    assert machine.record.outcome is None


async def test_persistence_failure_surfaces_notice(machine, submitter):
    submitter.fail = True
    await machine.start_section(SectionKind.TYPING, fullscreen=True)

    await machine.complete_section(SectionKind.TYPING)

    assert machine.sections[SectionKind.TYPING].status == SectionStatus.COMPLETED
    assert machine.record.notices[-1].kind == NoticeKind.PERSISTENCE_ERROR


async def test_restore_resumes_active_section(machine, clock, store, machine_options):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    clock.advance(30)
    await machine.record_typing("Customer", at_ms=30000)

    restored = await AssessmentStateMachine.restore(await store.get(machine.session_id), **machine_options)

    assert restored.active_section == SectionKind.TYPING
    assert restored.attempt(SectionKind.TYPING).transcript == "Customer"
    assert restored.remaining_seconds(SectionKind.TYPING) == 150
    assert restored.monitor.is_armed

    clock.advance(200)
    await restored.tick()
    assert restored.sections[SectionKind.TYPING].status == SectionStatus.COMPLETED


async def test_restore_keeps_finished_sections_closed(machine, store, machine_options):
    await machine.start_section(SectionKind.TYPING, fullscreen=True)
    await machine.complete_section(SectionKind.TYPING)

    restored = await AssessmentStateMachine.restore(await store.get(machine.session_id), **machine_options)

    with pytest.raises(SectionAlreadyCompleted):
        await restored.start_section(SectionKind.TYPING, fullscreen=True)
    assert restored.current_section == SectionKind.READING
