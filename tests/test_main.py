from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from config import Config
import main
from main import app, score_attempt_task
from models import PronunciationResult


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(Config, "BYTEDANCE_API_KEY", None)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_provider_health_reports_simulation(client):
    response = client.get("/health/provider")
    assert response.json()["provider"] == "fallback"


def test_score_transcript_exact(client):
    response = client.post("/pronunciation/score", json={"target_word": "banana", "transcript": "banana"})
    assert response.status_code == 200
    body = response.json()
    assert body["raw_accuracy"] == 100
    assert body["boosted_accuracy"] == 100
    assert body["analysis"]["overall_quality"] == "excellent"


def test_score_empty_transcript(client):
    response = client.post("/pronunciation/score", json={"target_word": "cat", "transcript": ""})
    body = response.json()
    assert body["raw_accuracy"] == 0
    assert body["analysis"]["overall_quality"] == "needs improvement"
    assert body["analysis"]["suggestions"]


def test_score_requires_target_word(client):
    response = client.post("/pronunciation/score", json={"target_word": "  ", "transcript": "cat"})
    assert response.status_code == 400


def test_attempt_without_provider_is_simulated(client):
    response = client.post("/pronunciation", data={"target_word": "banana", "learner_id": "amy"})
    assert response.status_code == 200
    body = response.json()
    assert body["provider"] == "fallback"
    assert 0 <= body["raw_accuracy"] <= body["boosted_accuracy"] <= 100
    assert len(body["alternatives"]) <= 3


def test_attempt_with_audio_upload(client):
    files = {"audio": ("recording.webm", b"fake audio", "audio/webm")}
    response = client.post("/pronunciation", data={"target_word": "cat"}, files=files)
    assert response.status_code == 200
    assert response.json()["target_word"] == "cat"


def test_unsupported_audio_format(client):
    files = {"audio": ("notes.txt", b"hello", "text/plain")}
    response = client.post("/pronunciation", data={"target_word": "cat"}, files=files)
    assert response.status_code == 400


def test_empty_audio_file(client):
    files = {"audio": ("recording.wav", b"", "audio/wav")}
    response = client.post("/pronunciation", data={"target_word": "cat"}, files=files)
    assert response.status_code == 400


def test_reset_session(client):
    assert client.delete("/sessions/zoe").status_code == 404
    client.post("/pronunciation", data={"target_word": "dog", "learner_id": "zoe"})
    response = client.delete("/sessions/zoe")
    assert response.status_code == 200
    assert response.json()["status"] == "reset"


class FakeTask:
    def __init__(self):
        self.calls = []

    def delay(self, file_path, target_word):
        with open(file_path, "rb") as f:
            self.calls.append((file_path, target_word, f.read()))
        return SimpleNamespace(id="task-123")


class FakeCelery:
    def __init__(self, state, result=None):
        self.state = state
        self.result = result

    def AsyncResult(self, task_id):
        return SimpleNamespace(state=self.state, result=self.result, info=None)


def test_async_attempt_saves_upload_and_enqueues(client, monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "UPLOAD_DIR", str(tmp_path))
    task = FakeTask()
    monkeypatch.setattr(main, "score_attempt_task", task)

    files = {"audio": ("recording.wav", b"fake audio", "audio/wav")}
    response = client.post("/pronunciation/async", data={"target_word": "cat"}, files=files)

    assert response.status_code == 200
    assert response.json() == {"message": "Processing started", "task_id": "task-123"}
    file_path, target_word, content = task.calls[0]
    assert file_path.startswith(str(tmp_path))
    assert file_path.endswith(".wav")
    assert target_word == "cat"
    assert content == b"fake audio"


def test_status_of_finished_task(client, monkeypatch):
    monkeypatch.setattr(main, "celery_app", FakeCelery("SUCCESS", {"raw_accuracy": 100}))
    response = client.get("/status/task-123")
    assert response.json() == {"status": "SUCCESS", "result": {"raw_accuracy": 100}}


def test_status_of_pending_task(client, monkeypatch):
    monkeypatch.setattr(main, "celery_app", FakeCelery("PENDING"))
    body = client.get("/status/task-123").json()
    assert body["status"] == "PENDING"
    assert "pending" in body["message"]


def test_background_task_scores_and_removes_upload(monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "BYTEDANCE_API_KEY", None)
    upload = tmp_path / "recording.wav"
    upload.write_bytes(b"fake audio")

    result = score_attempt_task(str(upload), "cat")

    assert not upload.exists()
    assert set(result) == set(PronunciationResult.model_fields)
    assert result["target_word"] == "cat"
    assert result["provider"] == "fallback"
    assert 0 <= result["raw_accuracy"] <= result["boosted_accuracy"] <= 100


def test_background_task_without_audio(monkeypatch):
    monkeypatch.setattr(Config, "BYTEDANCE_API_KEY", None)
    result = score_attempt_task(None, "banana")
    assert PronunciationResult.model_validate(result).target_word == "banana"
