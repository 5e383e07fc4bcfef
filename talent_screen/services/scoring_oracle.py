"""OpenAI-backed scoring oracle for spoken and written answers."""
import io
import json
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError

from talent_screen.config import settings
from talent_screen.errors import ScoringOracleFailure
from talent_screen.models.results import VoiceScores, WritingScores
from talent_screen.services.collaborators import ScoringOracle
from talent_screen.services.scoring import cefr_description, cefr_from_score

logger = logging.getLogger(__name__)

VOICE_RUBRIC = """
You are an expert English language assessor hiring for customer service roles.
Score the candidate's spoken answer (transcribed below) against the prompt they were given.

### PROMPT ({task_type})
{prompt}

### TRANSCRIPT
{transcript}

### INSTRUCTIONS
- Score pronunciation, fluency, vocabulary, grammar and customer service skill from 0 to 100.
- Pronunciation and fluency must be judged from the transcript's wording and hesitations.
- overallScore is your holistic 0-100 score.
- Give one sentence of feedback per category.

### OUTPUT FORMAT (JSON)
{{
    "pronunciation": 80,
    "fluency": 80,
    "vocabulary": 80,
    "grammar": 80,
    "customerServiceScore": 80,
    "overallScore": 80,
    "feedback": {{"pronunciation": "...", "fluency": "...", "vocabulary": "...", "grammar": "..."}}
}}
"""

WRITING_RUBRIC = """
You are an expert evaluator of written customer service communication.
Score the candidate's response to the task below.

### TASK ({task_type})
{prompt}

### RESPONSE
{text}

### OUTPUT FORMAT (JSON)
{{
    "score": 80,
    "feedback": "One or two sentences.",
    "strengths": ["..."],
    "areasForImprovement": ["..."]
}}
"""


def _clamp_score(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


class OpenAIScoringOracle(ScoringOracle):
    """Whisper transcription followed by JSON-mode rubric scoring."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None, pass_score: Optional[float] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.scoring_timeout_seconds)
        self.model = model or settings.openai_model
        self.pass_score = settings.voice_pass_score if pass_score is None else pass_score

    async def transcribe(self, audio: bytes) -> str:
        if not audio:
            raise ScoringOracleFailure("Invalid audio format or empty audio file")

        buffer = io.BytesIO(audio)
        buffer.name = "answer.webm"
        try:
            transcription = await self.client.audio.transcriptions.create(
                model=settings.openai_transcription_model,
                file=buffer,
            )
        except OpenAIError as e:
            logger.error(f"Error transcribing audio: {e}")
            raise ScoringOracleFailure(f"Failed to transcribe audio: {e}") from e
        return transcription.text

    async def score_voice(self, audio: bytes, prompt: str, task_type: str) -> VoiceScores:
        transcript = await self.transcribe(audio)
        logger.info(f"Transcript length: {len(transcript)}")

        data = await self._complete_json(VOICE_RUBRIC.format(task_type=task_type, prompt=prompt, transcript=transcript))
        overall = _clamp_score(data.get("overallScore"))
        level = cefr_from_score(overall)
        feedback = data.get("feedback")

        return VoiceScores(
            pronunciation=_clamp_score(data.get("pronunciation")),
            fluency=_clamp_score(data.get("fluency")),
            vocabulary=_clamp_score(data.get("vocabulary")),
            grammar=_clamp_score(data.get("grammar")),
            customer_service_score=_clamp_score(data.get("customerServiceScore")),
            overall_score=overall,
            passed=overall >= self.pass_score,
            cefr_level=level,
            cefr_description=cefr_description(level),
            feedback={k: str(v) for k, v in feedback.items()} if isinstance(feedback, dict) else {},
        )

    async def score_writing(self, text: str, prompt: str, task_type: str) -> WritingScores:
        data = await self._complete_json(WRITING_RUBRIC.format(task_type=task_type, prompt=prompt, text=text))
        score = _clamp_score(data.get("score"))

        return WritingScores(
            score=score,
            cefr_level=cefr_from_score(score),
            feedback=str(data.get("feedback", "")),
            strengths=list(data.get("strengths") or []),
            areas_for_improvement=list(data.get("areasForImprovement") or []),
        )

    async def _complete_json(self, prompt: str) -> Dict[str, Any]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=0.0
            )
            content = response.choices[0].message.content
            data = json.loads(content)
        except OpenAIError as e:
            logger.error(f"Scoring Error: {e}")
            raise ScoringOracleFailure() from e
        except (json.JSONDecodeError, TypeError, IndexError) as e:
            logger.error(f"Unreadable scoring response: {e}")
            raise ScoringOracleFailure() from e

        if not isinstance(data, dict):
            logger.error(f"Scoring response is not a JSON object: {type(data).__name__}")
            raise ScoringOracleFailure()
        return data
