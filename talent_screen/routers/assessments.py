"""Assessment router."""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from talent_screen.config import settings
from talent_screen.errors import AssessmentError
from talent_screen.models.media import CapturePurpose
from talent_screen.models.section import ALL_SECTIONS, SectionKind, SectionStatus, Stage
from talent_screen.schemas.assessment import (
    AnswerRequest,
    AssessmentStateResponse,
    ChunkResponse,
    CompleteSectionRequest,
    PermissionsRequest,
    ReadingPageRequest,
    ResultsResponse,
    SectionResponse,
    SignalRequest,
    SignalResponse,
    StartSectionRequest,
    TypingInputRequest,
    TypingInputResponse,
    VoicePromptResponse,
    VoiceScoreResponse,
    WriteRequest,
    WritingTaskResponse
)
from talent_screen.services.assessment_service import AssessmentService
from talent_screen.services.state_machine import AssessmentStateMachine
from talent_screen.services.typing_metrics import live_wpm
from talent_screen.services.typing_text_service import TypingTextService
from talent_screen.utils.dependencies import get_assessment_service
from talent_screen.utils.http_errors import to_http_exception


router = APIRouter(prefix="/api/v1/assessments", tags=["Assessments"])


def state_response(machine: AssessmentStateMachine) -> AssessmentStateResponse:
    record = machine.record
    return AssessmentStateResponse(
        session_id=machine.session_id,
        state=record.state,
        active_section=machine.active_section,
        current_section=machine.current_section,
        sections=[
            SectionResponse(
                **record.sections[kind].model_dump(),
                remaining_seconds=machine.remaining_seconds(kind)
            )
            for kind in ALL_SECTIONS
        ],
        gate_results={stage.value: passed for stage, passed in record.gate_results.items()},
        assessment_exited=record.assessment_exited,
        outcome=record.outcome,
        notices=record.notices,
        heartbeat_interval=settings.proctoring_poll_interval
    )


async def load_machine(session_id: str, service: AssessmentService) -> AssessmentStateMachine:
    try:
        return await service.get_machine(session_id)
    except AssessmentError as e:
        raise to_http_exception(e)


@router.get("/{session_id}", response_model=AssessmentStateResponse)
async def get_state(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Current assessment state, sections and candidate notices."""
    machine = await load_machine(session_id, service)
    await machine.tick()
    return state_response(machine)


@router.post("/{session_id}/stages/{stage}/enter", response_model=AssessmentStateResponse)
async def enter_stage(
    session_id: str,
    stage: Stage,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    try:
        await machine.enter_stage(stage)
    except AssessmentError as e:
        raise to_http_exception(e)
    return state_response(machine)


@router.post("/{session_id}/permissions", response_model=AssessmentStateResponse)
async def update_permissions(
    session_id: str,
    request: PermissionsRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Record the camera/microphone permissions granted in the browser."""
    machine = await load_machine(session_id, service)
    service.device(session_id).update_permissions(camera=request.camera, microphone=request.microphone)
    return state_response(machine)


@router.post("/{session_id}/sections/{kind}/start", response_model=AssessmentStateResponse)
async def start_section(
    session_id: str,
    kind: SectionKind,
    request: StartSectionRequest,
    service: AssessmentService = Depends(get_assessment_service),
    texts: TypingTextService = Depends(TypingTextService)
):
    """Start a section. Requires fullscreen and the camera for security recording."""
    machine = await load_machine(session_id, service)
    service.device(session_id).update_permissions(
        camera=request.camera_granted,
        microphone=request.microphone_granted
    )

    typing_text = None
    if kind == SectionKind.TYPING:
        typing_text = (await texts.random_text(request.typing_difficulty)).text

    try:
        await machine.start_section(
            kind,
            fullscreen=request.fullscreen,
            visible=request.visible,
            typing_text=typing_text
        )
    except AssessmentError as e:
        raise to_http_exception(e)
    return state_response(machine)


@router.post("/{session_id}/sections/{kind}/complete", response_model=AssessmentStateResponse)
async def complete_section(
    session_id: str,
    kind: SectionKind,
    request: CompleteSectionRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Voluntarily submit the active section."""
    machine = await load_machine(session_id, service)
    try:
        await machine.complete_section(kind, request.model_dump(exclude_none=True))
    except AssessmentError as e:
        raise to_http_exception(e)
    return state_response(machine)


@router.post("/{session_id}/sections/{kind}/answers", status_code=status.HTTP_204_NO_CONTENT)
async def answer_question(
    session_id: str,
    kind: SectionKind,
    request: AnswerRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    try:
        await machine.answer(kind, request.question_id, request.option)
    except AssessmentError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/sections/{kind}/write", status_code=status.HTTP_204_NO_CONTENT)
async def write_answer(
    session_id: str,
    kind: SectionKind,
    request: WriteRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    try:
        await machine.write(kind, request.text, request.task_id)
    except AssessmentError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/typing/input", response_model=TypingInputResponse)
async def typing_input(
    session_id: str,
    request: TypingInputRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Record the typed text after a keystroke and return live WPM."""
    machine = await load_machine(session_id, service)
    try:
        attempt = await machine.record_typing(request.text, request.at_ms)
    except AssessmentError as e:
        raise to_http_exception(e)

    section = machine.sections[SectionKind.TYPING]
    elapsed = section.time_limit - machine.remaining_seconds(SectionKind.TYPING)
    return TypingInputResponse(
        characters=len(attempt.transcript),
        keystrokes=len(attempt.keystrokes),
        live_wpm=live_wpm(attempt.transcript, elapsed),
        remaining_seconds=machine.remaining_seconds(SectionKind.TYPING)
    )


@router.post("/{session_id}/reading/page", response_model=AssessmentStateResponse)
async def reading_page(
    session_id: str,
    request: ReadingPageRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    try:
        await machine.go_to_page(request.page)
    except AssessmentError as e:
        raise to_http_exception(e)
    return state_response(machine)


@router.post("/{session_id}/voice/recording/start", response_model=VoicePromptResponse)
async def start_voice_recording(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Open the microphone for the current prompt."""
    machine = await load_machine(session_id, service)
    try:
        prompt = await machine.start_voice_recording()
    except AssessmentError as e:
        raise to_http_exception(e)
    return VoicePromptResponse(**prompt)


@router.post("/{session_id}/voice/recording/stop", response_model=VoiceScoreResponse)
async def stop_voice_recording(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Close the recording and score the answer."""
    machine = await load_machine(session_id, service)
    try:
        scores = await machine.stop_voice_recording()
    except AssessmentError as e:
        raise to_http_exception(e)

    section_status = machine.sections[SectionKind.VOICE].status
    if scores is None:
        return VoiceScoreResponse(accepted=False, section_status=section_status)
    return VoiceScoreResponse(
        accepted=True,
        overall_score=scores.overall_score,
        cefr_level=scores.cefr_level,
        fallback=scores.fallback,
        section_status=section_status
    )


@router.post("/{session_id}/writing/tasks/{task_id}/submit", response_model=WritingTaskResponse)
async def submit_writing_task(
    session_id: str,
    task_id: str,
    request: WriteRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    try:
        scores = await machine.submit_writing_task(task_id, request.text)
    except AssessmentError as e:
        raise to_http_exception(e)

    section_status = machine.sections[SectionKind.WRITING].status
    if scores is None:
        return WritingTaskResponse(accepted=False, section_status=section_status)
    return WritingTaskResponse(accepted=True, score=scores.score, fallback=scores.fallback, section_status=section_status)


@router.post("/{session_id}/media/{purpose}/chunk", response_model=ChunkResponse)
async def upload_media_chunk(
    session_id: str,
    purpose: CapturePurpose,
    request: Request,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Append raw recorded media to the running capture."""
    machine = await load_machine(session_id, service)
    data = await request.body()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty media chunk"
        )
    try:
        machine.feed_media(purpose, data)
    except AssessmentError as e:
        raise to_http_exception(e)
    return ChunkResponse(chunk_count=machine.captures[purpose].chunk_count)


@router.post("/{session_id}/signals", response_model=SignalResponse)
async def host_signal(
    session_id: str,
    request: SignalRequest,
    service: AssessmentService = Depends(get_assessment_service)
):
    """Fullscreen, visibility, clipboard, keyboard and heartbeat reports."""
    machine = await load_machine(session_id, service)
    try:
        rejected = await service.dispatch_signal(session_id, request.signal, request.payload)
    except AssessmentError as e:
        raise to_http_exception(e)
    return SignalResponse(
        rejected=rejected,
        state=machine.state,
        inputs_enabled=machine.monitor.inputs_enabled
    )


@router.get("/{session_id}/results", response_model=ResultsResponse)
async def get_results(
    session_id: str,
    service: AssessmentService = Depends(get_assessment_service)
):
    machine = await load_machine(session_id, service)
    record = machine.record
    return ResultsResponse(
        session_id=session_id,
        state=record.state,
        outcome=record.outcome,
        summaries={stage.value: summary for stage, summary in record.summaries.items()},
        sections={
            kind.value: record.sections[kind].result
            for kind in ALL_SECTIONS
            if record.sections[kind].status != SectionStatus.NOT_STARTED
        }
    )
