import json
from types import SimpleNamespace

import httpx
import pytest
from openai import OpenAIError

from talent_screen.errors import PersistenceFailure, ScoringOracleFailure
from talent_screen.models.section import SectionKind
from talent_screen.services.results_service import MongoResultsSubmitter
from talent_screen.services.scoring_oracle import OpenAIScoringOracle
from talent_screen.services.session_service import HttpSessionValidator


class FakeCollection:
    def __init__(self, fail=False):
        self.documents = []
        self.fail = fail

    async def insert_one(self, document):
        if self.fail:
            raise RuntimeError("connection reset")
        self.documents.append(document)


class FakeDatabase:
    def __init__(self, fail=False):
        self.section_results = FakeCollection(fail)


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeTranscriptions:
    async def create(self, **kwargs):
        return SimpleNamespace(text="Welcome to customer service, how can I help?")


def fake_openai(content=None, error=None):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=FakeCompletions(content, error)),
        audio=SimpleNamespace(transcriptions=FakeTranscriptions()),
    )


async def test_http_validator_accepts_valid_session():
    def handler(request):
        assert request.url.path == "/api/v1/sessions/ses_1_abc/validate"
        return httpx.Response(200, json={"valid": True, "session_id": "ses_1_abc"})

    validator = HttpSessionValidator("http://sessions.local/", transport=httpx.MockTransport(handler))
    validation = await validator.validate_session("ses_1_abc")

    assert validation.valid


async def test_http_validator_rejects_on_401():
    def handler(request):
        return httpx.Response(401, json={"detail": "Session has expired"})

    validator = HttpSessionValidator("http://sessions.local", transport=httpx.MockTransport(handler))
    validation = await validator.validate_session("ses_1_abc")

    assert not validation.valid
    assert validation.message == "Session has expired"


async def test_http_validator_network_failure_blocks():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    validator = HttpSessionValidator("http://sessions.local", transport=httpx.MockTransport(handler))
    validation = await validator.validate_session("ses_1_abc")

    assert not validation.valid


async def test_http_invalidate_swallows_errors():
    def handler(request):
        return httpx.Response(500)

    validator = HttpSessionValidator("http://sessions.local", transport=httpx.MockTransport(handler))
    await validator.invalidate_session("ses_1_abc", "Security violation")


async def test_results_are_stored_and_forwarded():
    forwarded = []

    def handler(request):
        forwarded.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    db = FakeDatabase()
    submitter = MongoResultsSubmitter(db, "http://hooks.local/results", transport=httpx.MockTransport(handler))
    await submitter.submit("ses_1_abc", SectionKind.READING, {"score": 75.0, "passed": True})

    assert db.section_results.documents[0]["section"] == "reading"
    assert forwarded[0]["result"]["score"] == 75.0


async def test_database_error_is_a_persistence_failure():
    submitter = MongoResultsSubmitter(FakeDatabase(fail=True))

    with pytest.raises(PersistenceFailure):
        await submitter.submit("ses_1_abc", SectionKind.TYPING, {"passed": False})


async def test_webhook_error_is_a_persistence_failure():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    submitter = MongoResultsSubmitter(FakeDatabase(), "http://hooks.local/results", transport=httpx.MockTransport(handler))

    with pytest.raises(PersistenceFailure):
        await submitter.submit("ses_1_abc", SectionKind.SJT, {"passed": True})


async def test_oracle_scores_writing():
    client = fake_openai(json.dumps({"score": 130, "feedback": "Polite", "strengths": ["Tone"]}))
    oracle = OpenAIScoringOracle(client=client, model="gpt-4o", pass_score=75)

    scores = await oracle.score_writing("Dear customer...", "Reply to the email", "email_response")

    assert scores.score == 100
    assert scores.cefr_level == "C2"
    assert scores.strengths == ["Tone"]
    assert client.chat.completions.requests[0]["response_format"] == {"type": "json_object"}


async def test_oracle_scores_voice_from_transcript():
    client = fake_openai(json.dumps({
        "pronunciation": 80, "fluency": 76, "vocabulary": 82, "grammar": 79,
        "customerServiceScore": 85, "overallScore": 80,
        "feedback": {"fluency": "Steady pace"}
    }))
    oracle = OpenAIScoringOracle(client=client, model="gpt-4o", pass_score=75)

    scores = await oracle.score_voice(b"webm-bytes", "Greet the caller", "reading_aloud")

    assert scores.overall_score == 80
    assert scores.passed
    assert scores.cefr_level == "B2"
    assert scores.feedback == {"fluency": "Steady pace"}


async def test_oracle_errors_become_scoring_failures():
    oracle = OpenAIScoringOracle(client=fake_openai(error=OpenAIError("rate limited")), model="gpt-4o")

    with pytest.raises(ScoringOracleFailure):
        await oracle.score_writing("text", "prompt", "email_response")


async def test_oracle_rejects_unreadable_json():
    oracle = OpenAIScoringOracle(client=fake_openai("not json"), model="gpt-4o")

    with pytest.raises(ScoringOracleFailure):
        await oracle.score_writing("text", "prompt", "email_response")


@pytest.mark.parametrize("content", ["[]", '"ok"', "null", "42"])
async def test_oracle_rejects_json_that_is_not_an_object(content):
    oracle = OpenAIScoringOracle(client=fake_openai(content), model="gpt-4o")

    with pytest.raises(ScoringOracleFailure):
        await oracle.score_writing("text", "prompt", "email_response")
    with pytest.raises(ScoringOracleFailure):
        await oracle.score_voice(b"audio", "prompt", "reading_aloud")


async def test_oracle_ignores_malformed_voice_feedback():
    oracle = OpenAIScoringOracle(client=fake_openai(json.dumps({"overallScore": 80, "feedback": "Clear"})), model="gpt-4o")

    scores = await oracle.score_voice(b"audio", "prompt", "reading_aloud")

    assert scores.overall_score == 80
    assert scores.feedback == {}


async def test_oracle_rejects_empty_audio():
    oracle = OpenAIScoringOracle(client=fake_openai("{}"), model="gpt-4o")

    with pytest.raises(ScoringOracleFailure):
        await oracle.score_voice(b"", "prompt", "reading_aloud")
