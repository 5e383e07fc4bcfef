"""Section result models."""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class TypingMetrics(BaseModel):
    """Output of the typing metrics engine."""
    wpm: int = 0
    accuracy: float = 0.0
    consistency: int = 0
    elapsed_seconds: float = 0.0
    keystrokes: int = 0
    total_chars: int = 0
    correct_chars: int = 0
    error_chars: int = 0


class TypingResult(BaseModel):
    metrics: TypingMetrics
    passed: bool


class ReadingResult(BaseModel):
    score: float
    correct_answers: int
    total_questions: int
    passed: bool


class GrammarResult(BaseModel):
    grammar_score: float
    writing_score: float
    combined_score: float
    overall_passed: bool


class VoiceScores(BaseModel):
    """Scores returned by the scoring oracle for one spoken answer."""
    pronunciation: int = 0
    fluency: int = 0
    vocabulary: int = 0
    grammar: int = 0
    customer_service_score: int = 0
    overall_score: int = 0
    passed: bool = False
    cefr_level: str = "A1"
    cefr_description: str = ""
    feedback: Dict[str, str] = Field(default_factory=dict)
    fallback: bool = False


class VoiceResult(BaseModel):
    pronunciation: int
    fluency: int
    vocabulary: int
    grammar: int
    overall: int
    passed: bool
    cefr_level: str
    prompts_answered: int


class WritingScores(BaseModel):
    """Scores returned by the scoring oracle for one written answer."""
    score: int = 0
    cefr_level: str = "A1"
    feedback: str = ""
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    fallback: bool = False


class WritingResult(BaseModel):
    email_response_score: int
    complaint_resolution_score: int
    process_documentation_score: int
    overall_writing_score: int
    passed: bool


class SjtResult(BaseModel):
    score: float
    correct_answers: int
    total_scenarios: int
    passed: bool


class Stage1Summary(BaseModel):
    typing_passed: bool
    reading_passed: bool
    grammar_passed: bool
    stage1_passed: bool


class Stage2Summary(BaseModel):
    voice_passed: bool
    writing_passed: bool
    sjt_passed: bool
    stage2_passed: bool
    overall_score: float
    cefr_level: str
    recommendations: List[str] = Field(default_factory=list)


class ForcedResult(BaseModel):
    """Synthesized result for a force-completed section."""
    passed: bool
    reason: str
    partial: Optional[Dict] = None
