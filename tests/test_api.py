import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from quiz_tracker.models.progress_model import session_start_key
from quiz_tracker.services.question_loader import QuestionSourceError
from quiz_tracker.services.quiz_controller import QuizController
from conftest import TEST_SOURCES


@pytest.fixture
def client(controller):
    with TestClient(create_app(controller)) as c:
        yield c


def test_lifespan_loads_and_closes_controller(controller, volatile, clock):
    with TestClient(create_app(controller)) as c:
        assert c.get("/api/state").json()["total"] == 3
        assert volatile.get(session_start_key("data_cloud")) is not None
        clock.advance(minutes=4)

    assert volatile.get(session_start_key("data_cloud")) is None
    assert controller.store.get_statistics("data_cloud").total_study_time_minutes == 4


def test_state_and_question(client):
    state = client.get("/api/state").json()
    assert state["data_source"] == "data_cloud"
    assert state["current_index"] == 0
    assert state["answered_count"] == 0

    q = client.get("/api/question/1").json()
    assert q["number"] == 2
    assert q["is_multiple_choice"] is True
    assert q["saved_answer"] is None

    assert client.get("/api/question/9").status_code == 404


def test_submit_answer_updates_statistics(client):
    r = client.post("/api/answer", json={"answer": "A"})
    assert r.status_code == 200
    assert r.json()["is_correct"] is True
    assert r.json()["accuracy"] == 100

    client.post("/api/navigate", json={"index": 1})
    r = client.post("/api/answer", json={"answer": ["A"]})
    assert r.json()["is_correct"] is False
    assert r.json()["incorrect_list"] == [2]

    stats = client.get("/api/statistics").json()
    assert stats["answeredQuestions"] == 2
    assert stats["correctAnswers"] == 1
    assert stats["accuracy"] == 50
    assert stats["sessionsCount"] == 1
    assert stats["todayStudyTimeMinutes"] == 0

    review = client.get("/api/review").json()
    assert review["incorrectQuestions"] == [2]
    assert review["masteredQuestions"] == [1]


def test_navigate_out_of_range_keeps_position(client):
    assert client.post("/api/navigate", json={"index": 2}).json() == {"index": 2, "ok": True}
    assert client.post("/api/navigate", json={"index": 5}).json() == {"index": 2, "ok": False}


def test_data_source_switch(client):
    listing = client.get("/api/data-sources").json()
    assert listing["selected"] == "data_cloud"
    assert [s["id"] for s in listing["sources"]] == ["data_cloud", "agentforce"]

    assert client.post("/api/data-source", json={"id": "unknown"}).status_code == 400

    r = client.post("/api/data-source", json={"id": "agentforce"})
    assert r.status_code == 200
    assert r.json()["data_source"] == "agentforce"
    assert r.json()["total"] == 2


def test_daily_records_and_export(client):
    client.post("/api/answer", json={"answer": "A"})

    records = client.get("/api/daily-records").json()["records"]
    assert len(records) == 7

    r = client.get("/api/export")
    assert r.status_code == 200
    assert "attachment" in r.headers["content-disposition"]
    exported = json.loads(r.text)
    assert exported["statistics"]["answeredQuestions"] == 1


def test_reset(client):
    client.post("/api/answer", json={"answer": "A"})
    r = client.post("/api/reset")
    assert r.json()["answered_count"] == 0
    assert client.get("/api/statistics").json()["answeredQuestions"] == 0


def test_question_load_failure_is_reported(store):
    def failing_source(path):
        raise QuestionSourceError("문제 파일을 찾을 수 없습니다")

    quiz = QuizController(store, sources=TEST_SOURCES, question_source=failing_source, use_timer=False)
    with TestClient(create_app(quiz)) as c:
        assert c.get("/api/state").json()["load_error"] == "문제 파일을 찾을 수 없습니다"
        assert c.get("/api/question/0").status_code == 503
        assert c.post("/api/answer", json={"answer": "A"}).status_code == 503


def test_index_page_is_served(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "/api/state" in r.text


def test_store_work_runs_off_the_event_loop(client, controller, monkeypatch):
    threads = []
    save = controller.store.save

    def recording_save(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            threads.append("event-loop")
        except RuntimeError:
            threads.append("worker")
        return save(*args, **kwargs)

    monkeypatch.setattr(controller.store, "save", recording_save)

    client.post("/api/answer", json={"answer": "A"})
    client.post("/api/navigate", json={"index": 1})
    client.post("/api/data-source", json={"id": "agentforce"})
    client.post("/api/reset")

    assert threads
    assert set(threads) == {"worker"}
