"""Section scoring and stage gating."""
from typing import Dict, List, Mapping, Optional, Sequence

from talent_screen.config import settings
from talent_screen.models.results import (
    GrammarResult, ReadingResult, SjtResult, Stage1Summary, Stage2Summary,
    VoiceResult, VoiceScores, WritingResult, WritingScores
)
from talent_screen.services.typing_metrics import round_half_up
from talent_screen.utils.question_bank import (
    GRAMMAR_QUESTIONS, READING_SCENARIOS, SJT_CORRECT_OPTIONS,
    STAGE2_FAIL_RECOMMENDATIONS, STAGE2_PASS_RECOMMENDATIONS
)

GRAMMAR_WEIGHT = 0.6
WRITING_WEIGHT = 0.4
TARGET_WRITING_LENGTH = 50

CEFR_DESCRIPTIONS = {
    "C2": "Proficient - Can express themselves spontaneously, very fluently and precisely, differentiating finer shades of meaning even in more complex situations.",
    "C1": "Advanced - Can express ideas fluently and spontaneously without much obvious searching for expressions, including in complex professional topics.",
    "B2": "Upper Intermediate - Can interact with a degree of fluency and spontaneity that makes regular interaction with native speakers quite possible without strain for either party.",
    "B1": "Intermediate - Can deal with most situations likely to arise while traveling in an area where the language is spoken, including unfamiliar situations.",
    "A2": "Elementary - Can communicate in simple and routine tasks requiring a simple and direct exchange of information on familiar topics.",
    "A1": "Beginner - Can understand and use familiar everyday expressions and very basic phrases aimed at the satisfaction of needs of a concrete type.",
}


def cefr_from_score(score: float) -> str:
    """CEFR level for a single spoken or written answer."""
    if score >= 95:
        return "C2"
    if score >= 85:
        return "C1"
    if score >= 75:
        return "B2"
    if score >= 60:
        return "B1"
    if score >= 40:
        return "A2"
    return "A1"


def cefr_description(level: str) -> str:
    return CEFR_DESCRIPTIONS.get(level, CEFR_DESCRIPTIONS["B1"])


def score_reading(
    answers: Mapping[str, int],
    scenarios: Sequence[Dict] = READING_SCENARIOS,
    pass_score: Optional[float] = None,
) -> ReadingResult:
    """Score reading comprehension answers keyed by question id."""
    pass_score = settings.reading_pass_score if pass_score is None else pass_score
    questions = [q for scenario in scenarios for q in scenario["questions"]]
    correct = sum(1 for q in questions if answers.get(q["id"]) == q["correct_answer"])
    total = len(questions)
    score = (correct / total) * 100 if total else 0.0

    return ReadingResult(
        score=score,
        correct_answers=correct,
        total_questions=total,
        passed=score >= pass_score,
    )


def writing_length_score(response: str) -> float:
    """Short-answer score proportional to length, capped at 100."""
    return min(100.0, max(0.0, (len(response) / TARGET_WRITING_LENGTH) * 100))


def combine_grammar(grammar_score: float, writing_score: float, pass_score: Optional[float] = None) -> GrammarResult:
    pass_score = settings.grammar_pass_score if pass_score is None else pass_score
    combined = grammar_score * GRAMMAR_WEIGHT + writing_score * WRITING_WEIGHT
    return GrammarResult(
        grammar_score=grammar_score,
        writing_score=writing_score,
        combined_score=combined,
        overall_passed=combined >= pass_score,
    )


def score_grammar(
    answers: Mapping[str, int],
    writing_response: str,
    questions: Sequence[Dict] = GRAMMAR_QUESTIONS,
    pass_score: Optional[float] = None,
) -> GrammarResult:
    """Score the grammar quiz plus its short writing response."""
    correct = sum(1 for q in questions if answers.get(q["id"]) == q["correct_answer"])
    grammar_score = (correct / len(questions)) * 100 if questions else 0.0
    return combine_grammar(grammar_score, writing_length_score(writing_response), pass_score)


def score_sjt(
    selections: Mapping[int, int],
    correct_options: Sequence[int] = SJT_CORRECT_OPTIONS,
    pass_score: Optional[float] = None,
) -> SjtResult:
    """Score situational-judgment selections keyed by scenario index."""
    pass_score = settings.sjt_pass_score if pass_score is None else pass_score
    total = len(correct_options)
    correct = sum(
        1 for scenario_id, option in selections.items()
        if 0 <= scenario_id < total and correct_options[scenario_id] == option
    )
    score = (correct / total) * 100 if total else 0.0

    return SjtResult(score=score, correct_answers=correct, total_scenarios=total, passed=score >= pass_score)


def aggregate_voice(prompt_scores: List[VoiceScores], pass_score: Optional[float] = None) -> VoiceResult:
    """Average per-prompt oracle scores into the voice section result."""
    pass_score = settings.voice_pass_score if pass_score is None else pass_score
    if not prompt_scores:
        return VoiceResult(
            pronunciation=0, fluency=0, vocabulary=0, grammar=0, overall=0,
            passed=False, cefr_level="A1", prompts_answered=0
        )

    def avg(field: str) -> int:
        return int(round_half_up(sum(getattr(s, field) for s in prompt_scores) / len(prompt_scores)))

    overall = avg("overall_score")
    return VoiceResult(
        pronunciation=avg("pronunciation"),
        fluency=avg("fluency"),
        vocabulary=avg("vocabulary"),
        grammar=avg("grammar"),
        overall=overall,
        passed=overall >= pass_score,
        cefr_level=cefr_from_score(overall),
        prompts_answered=len(prompt_scores),
    )


def aggregate_writing(task_scores: Mapping[str, WritingScores], pass_score: Optional[float] = None) -> WritingResult:
    """Combine the three writing task scores."""
    pass_score = settings.writing_pass_score if pass_score is None else pass_score
    email = task_scores["email_response"].score if "email_response" in task_scores else 0
    complaint = task_scores["complaint_resolution"].score if "complaint_resolution" in task_scores else 0
    process = task_scores["process_documentation"].score if "process_documentation" in task_scores else 0
    overall = int(round_half_up((email + complaint + process) / 3))

    return WritingResult(
        email_response_score=email,
        complaint_resolution_score=complaint,
        process_documentation_score=process,
        overall_writing_score=overall,
        passed=overall >= pass_score,
    )


def gate_stage1(typing_passed: bool, reading_passed: bool, grammar_passed: bool) -> Stage1Summary:
    return Stage1Summary(
        typing_passed=typing_passed,
        reading_passed=reading_passed,
        grammar_passed=grammar_passed,
        stage1_passed=typing_passed and reading_passed and grammar_passed,
    )


def gate_stage2(
    voice_score: float, voice_passed: bool,
    writing_score: float, writing_passed: bool,
    sjt_score: float, sjt_passed: bool,
) -> Stage2Summary:
    """Stage 2 passes only when every component passes."""
    stage2_passed = voice_passed and writing_passed and sjt_passed
    overall = writing_score * 0.3 + voice_score * 0.4 + sjt_score * 0.3

    if overall >= 90:
        cefr_level = "C2"
    elif overall >= 80:
        cefr_level = "C1"
    elif overall >= 70:
        cefr_level = "B2"
    else:
        cefr_level = "B1"

    return Stage2Summary(
        voice_passed=voice_passed,
        writing_passed=writing_passed,
        sjt_passed=sjt_passed,
        stage2_passed=stage2_passed,
        overall_score=round(overall, 1),
        cefr_level=cefr_level,
        recommendations=list(STAGE2_PASS_RECOMMENDATIONS if stage2_passed else STAGE2_FAIL_RECOMMENDATIONS),
    )


def fallback_voice_scores(optimistic: bool) -> VoiceScores:
    """Scores used when the oracle cannot be reached."""
    if optimistic:
        return VoiceScores(
            pronunciation=85, fluency=80, vocabulary=82, grammar=78,
            customer_service_score=80, overall_score=81, passed=True,
            cefr_level="B2", cefr_description=cefr_description("B2"), fallback=True,
        )
    return VoiceScores(cefr_level="A1", cefr_description=cefr_description("A1"), fallback=True)


def fallback_writing_scores(optimistic: bool) -> WritingScores:
    if optimistic:
        return WritingScores(score=75, cefr_level="B2", fallback=True)
    return WritingScores(score=0, cefr_level="A1", fallback=True)
