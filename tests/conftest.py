from datetime import datetime, timedelta, timezone

import pytest

from quiz_tracker.models.question_model import Question
from quiz_tracker.services.data_sources import DataSource
from quiz_tracker.services.kv_store import MemoryStore
from quiz_tracker.services.progress_store import ProgressStore
from quiz_tracker.services.question_loader import QuestionSourceError
from quiz_tracker.services.quiz_controller import QuizController


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingStore(MemoryStore):
    """쓰기 호출을 기록하는 MemoryStore."""

    def __init__(self, quota_bytes=None) -> None:
        super().__init__(quota_bytes)
        self.writes = []

    def set(self, key, value):
        self.writes.append(key)
        super().set(key, value)


def make_question(number, correct, text=None):
    return Question(
        number=number,
        question=text or f"問題{number}",
        choiceA="選択肢A",
        choiceB="選択肢B",
        choiceC="選択肢C",
        choiceD="選択肢D",
        correct_answer=correct,
        explanation=f"解説{number}",
    )


TEST_SOURCES = [
    DataSource(id="data_cloud", name="Data Cloud", file_path="data_cloud.csv"),
    DataSource(id="agentforce", name="Agentforce", file_path="agentforce.csv"),
]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def durable():
    return RecordingStore()


@pytest.fixture
def volatile():
    return MemoryStore()


@pytest.fixture
def store(durable, volatile, clock):
    return ProgressStore(durable=durable, volatile=volatile, clock=clock)


@pytest.fixture
def question_banks():
    return {
        "data_cloud.csv": [
            make_question(1, "A"),
            make_question(2, "A,B"),
            make_question(3, "C、D"),
        ],
        "agentforce.csv": [
            make_question(1, "B"),
            make_question(2, "D"),
        ],
    }


@pytest.fixture
def question_source(question_banks):
    def _load(path):
        if path not in question_banks:
            raise QuestionSourceError(f"문제 파일을 찾을 수 없습니다: {path}")
        return list(question_banks[path])
    return _load


@pytest.fixture
def controller(store, question_source):
    quiz = QuizController(
        store,
        sources=TEST_SOURCES,
        question_source=question_source,
        use_timer=False,
    )
    yield quiz
    quiz.timer.stop()
