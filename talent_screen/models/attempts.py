"""Per-section working state.

An attempt is mutable only while its section is active; once the section
finishes it is locked and every mutator raises ``InvalidTransition``.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from talent_screen.errors import InvalidTransition
from talent_screen.models.results import VoiceScores, WritingScores
from talent_screen.models.section import SectionKind
from talent_screen.utils.question_bank import READING_SCENARIOS, VOICE_PROMPTS, WRITING_TASKS


class SectionAttempt(BaseModel):
    locked: bool = False

    def ensure_open(self) -> None:
        if self.locked:
            raise InvalidTransition("This section has already been submitted.")

    def lock(self) -> None:
        self.locked = True


class TypingAttempt(SectionAttempt):
    reference_text: str
    transcript: str = ""
    keystrokes: List[float] = Field(default_factory=list, description="Keystroke times in ms")

    def record_input(self, text: str, at_ms: float) -> None:
        self.ensure_open()
        self.transcript = text
        self.keystrokes.append(at_ms)


class ChoiceAttempt(SectionAttempt):
    answers: Dict[str, int] = Field(default_factory=dict)

    def answer(self, question_id: str, option: int) -> None:
        self.ensure_open()
        self.answers[str(question_id)] = option


class ReadingAttempt(ChoiceAttempt):
    page: int = 0
    page_count: int = len(READING_SCENARIOS)

    def go_to_page(self, page: int) -> None:
        """Scenario paging, backwards included, while the section is open."""
        self.ensure_open()
        if not 0 <= page < self.page_count:
            raise InvalidTransition(f"Scenario {page + 1} does not exist.")
        self.page = page


class GrammarAttempt(ChoiceAttempt):
    writing_response: str = ""

    def write(self, text: str) -> None:
        self.ensure_open()
        self.writing_response = text


class SjtAttempt(ChoiceAttempt):
    rationales: Dict[str, str] = Field(default_factory=dict)

    def explain(self, scenario_id: str, rationale: str) -> None:
        self.ensure_open()
        self.rationales[str(scenario_id)] = rationale

    def selections(self) -> Dict[int, int]:
        return {int(k): v for k, v in self.answers.items()}


class VoiceAttempt(SectionAttempt):
    prompt_index: int = 0
    prompt_scores: List[VoiceScores] = Field(default_factory=list)
    recording: bool = False

    @property
    def current_prompt(self) -> Optional[Dict]:
        if self.prompt_index < len(VOICE_PROMPTS):
            return VOICE_PROMPTS[self.prompt_index]
        return None

    @property
    def finished(self) -> bool:
        return self.prompt_index >= len(VOICE_PROMPTS)

    def record_score(self, scores: VoiceScores) -> None:
        self.ensure_open()
        self.prompt_scores.append(scores)
        self.prompt_index += 1


class WritingAttempt(SectionAttempt):
    responses: Dict[str, str] = Field(default_factory=dict)
    scores: Dict[str, WritingScores] = Field(default_factory=dict)

    def write(self, task_id: str, text: str) -> None:
        self.ensure_open()
        if task_id not in {task["id"] for task in WRITING_TASKS}:
            raise InvalidTransition(f"Unknown writing task: {task_id}")
        self.responses[task_id] = text

    def record_score(self, task_id: str, scores: WritingScores) -> None:
        self.ensure_open()
        self.scores[task_id] = scores

    @property
    def finished(self) -> bool:
        return all(task["id"] in self.scores for task in WRITING_TASKS)


ATTEMPT_TYPES = {
    SectionKind.TYPING: TypingAttempt,
    SectionKind.READING: ReadingAttempt,
    SectionKind.GRAMMAR: GrammarAttempt,
    SectionKind.VOICE: VoiceAttempt,
    SectionKind.WRITING: WritingAttempt,
    SectionKind.SJT: SjtAttempt,
}
