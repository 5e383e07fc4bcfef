from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from talent_screen.main import app
from talent_screen.services.assessment_service import AssessmentService
from talent_screen.services.session_service import SessionService
from talent_screen.utils.dependencies import get_assessment_service, get_session_service


@pytest.fixture
def client(store, clock, oracle, submitter, invalidator):
    sessions = SessionService(store, ttl=timedelta(hours=3), clock=clock)
    assessments = AssessmentService(
        store=store,
        validator=sessions,
        invalidator=sessions,
        submitter=submitter,
        oracle=oracle,
        clock=clock,
        force_completed_passes=False,
        optimistic_fallback_scores=False,
    )
    app.dependency_overrides[get_session_service] = lambda: sessions
    app.dependency_overrides[get_assessment_service] = lambda: assessments
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client):
    response = client.post("/api/v1/sessions/register", json={
        "full_name": "Grace Hopper",
        "email": "grace@acme-support.com",
        "experience": {"years": 4}
    })
    assert response.status_code == 201
    return response.json()["session_id"]


def start(client, session_id, kind, **body):
    payload = {"fullscreen": True, "camera_granted": True, "microphone_granted": True}
    payload.update(body)
    return client.post(f"/api/v1/assessments/{session_id}/sections/{kind}/start", json=payload)


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "database": "unavailable"}


def test_register_and_validate(client):
    session_id = register(client)

    assert session_id.startswith("ses_")
    response = client.get(f"/api/v1/sessions/{session_id}/validate")
    assert response.status_code == 200
    assert response.json()["valid"] is True


def test_validate_unknown_session(client):
    response = client.get("/api/v1/sessions/ses_1_missing/validate")
    assert response.status_code == 401


def test_invalidated_session_cannot_start(client):
    session_id = register(client)
    client.post(f"/api/v1/sessions/{session_id}/invalidate", json={"reason": "Withdrawn"})

    response = start(client, session_id, "typing")

    assert response.status_code == 401


def test_invalidation_survives_further_typing(client):
    session_id = register(client)
    assert start(client, session_id, "typing").status_code == 200

    client.post(f"/api/v1/sessions/{session_id}/invalidate", json={"reason": "Withdrawn"})
    client.post(f"/api/v1/assessments/{session_id}/typing/input", json={"text": "The"})

    assert client.get(f"/api/v1/sessions/{session_id}/validate").status_code == 401


def test_unknown_assessment_is_unauthorized(client):
    assert client.get("/api/v1/assessments/ses_1_missing").status_code == 401


def test_start_requires_fullscreen(client):
    session_id = register(client)

    response = start(client, session_id, "typing", fullscreen=False)

    assert response.status_code == 403
    assert "fullscreen" in response.json()["detail"]


def test_start_requires_camera(client):
    session_id = register(client)

    response = start(client, session_id, "typing", camera_granted=False)

    assert response.status_code == 403


def test_sections_cannot_be_skipped(client):
    session_id = register(client)

    assert start(client, session_id, "reading").status_code == 400


def test_typing_flow(client, clock):
    session_id = register(client)

    response = start(client, session_id, "typing")
    assert response.status_code == 200
    assert response.json()["active_section"] == "typing"

    clock.advance(9)
    response = client.post(f"/api/v1/assessments/{session_id}/typing/input", json={"text": "Customer "})
    assert response.status_code == 200
    assert response.json()["characters"] == 9
    assert response.json()["live_wpm"] == 12

    response = client.post(f"/api/v1/assessments/{session_id}/sections/typing/complete", json={})
    body = response.json()
    typing = next(s for s in body["sections"] if s["kind"] == "typing")
    assert typing["status"] == "completed"
    assert body["current_section"] == "reading"

    assert start(client, session_id, "typing").status_code == 409


def test_fullscreen_exit_ends_assessment(client):
    session_id = register(client)
    start(client, session_id, "typing")

    response = client.post(f"/api/v1/assessments/{session_id}/signals", json={
        "signal": "fullscreen_change",
        "payload": {"fullscreen": False}
    })

    assert response.status_code == 200
    assert response.json()["state"] == "complete"

    state = client.get(f"/api/v1/assessments/{session_id}").json()
    assert state["outcome"]["reason"] == "security_violation"
    assert all(section["status"] == "force_completed" for section in state["sections"])
    assert start(client, session_id, "reading").status_code == 409
    assert client.get(f"/api/v1/sessions/{session_id}/validate").status_code == 401


def test_clipboard_is_rejected_during_section(client):
    session_id = register(client)
    start(client, session_id, "typing")

    response = client.post(f"/api/v1/assessments/{session_id}/signals", json={
        "signal": "keydown",
        "payload": {"key": "v", "ctrl": True}
    })

    assert response.json()["rejected"] is True
    assert response.json()["inputs_enabled"] is False
    assert response.json()["state"] == "stage1_active"


def test_media_chunk_for_security_recording(client):
    session_id = register(client)
    start(client, session_id, "typing")

    response = client.post(
        f"/api/v1/assessments/{session_id}/media/security/chunk",
        content=b"\x1a\x45\xdf\xa3",
        headers={"Content-Type": "application/octet-stream"}
    )

    assert response.status_code == 200


def test_results_after_violation(client):
    session_id = register(client)
    start(client, session_id, "typing")
    client.post(f"/api/v1/assessments/{session_id}/signals", json={
        "signal": "visibility_change",
        "payload": {"state": "hidden"}
    })

    results = client.get(f"/api/v1/assessments/{session_id}/results").json()

    assert results["outcome"]["reason"] == "security_violation"
    assert results["sections"]["typing"]["forced"] is True
    assert results["sections"]["reading"] is None


def test_random_typing_text_falls_back_to_default(client):
    response = client.get("/api/v1/typing-texts/random")

    assert response.status_code == 200
    assert response.json()["text"].startswith("Customer service")
