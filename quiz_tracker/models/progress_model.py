"""
models/progress_model.py

문제은행(데이터 소스) 하나에 대한 학습 진행 기록 모델.
Pydantic BaseModel 기반이며, 직렬화 시 camelCase 키를 사용해
기존 저장 포맷(JSON)과 호환된다. 동작 없음, 생성만 담당.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ── 저장 포맷 상수 ───────────────────────────────────────────────────────────
DATA_VERSION = "1.0.0"

PROGRESS_KEY_PREFIX = "salesforce_quiz_progress"
SESSION_START_KEY_PREFIX = "salesforce_quiz_session_start"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionAnswer(_CamelModel):
    """
    한 문제에 대한 사용자의 최신 응답.

    Attributes:
        user_answer:       선택한 보기 코드. 복수 선택은 리스트 또는 ',' 결합 문자열.
        is_correct:        제출 시마다 다시 판정되는 정오 여부.
        attempt_count:     같은 문제에 제출한 횟수 (재응답 포함, 단조 증가).
        first_answered_at: 최초 응답 시각. 한 번 기록되면 바뀌지 않는다.
        last_answered_at:  최근 응답 시각.
    """

    user_answer: Union[str, List[str]]
    is_correct: bool
    attempt_count: int = Field(default=1, ge=1)
    first_answered_at: datetime
    last_answered_at: datetime


class DailyStudyRecord(_CamelModel):
    date: str = Field(..., description="YYYY-MM-DD (로컬 날짜)")
    study_time_minutes: int = 0
    questions_answered: int = 0
    correct_answers: int = 0


class LearningStatistics(_CamelModel):
    total_questions: int = 0
    answered_questions: int = 0
    correct_answers: int = 0
    accuracy: int = 0
    total_study_time_minutes: int = 0
    sessions_count: int = 0


class ReviewData(_CamelModel):
    incorrect_questions: List[int] = Field(default_factory=list)
    needs_review: List[int] = Field(default_factory=list)
    mastered_questions: List[int] = Field(default_factory=list)


class SessionData(_CamelModel):
    """
    현재 세션 정보.

    session_duration_minutes 는 현재 세션 중 누적 학습 시간에
    이미 반영된 분(minute) 수이다.
    """

    start_time: datetime
    last_active_time: datetime
    session_duration_minutes: int = 0


class QuizProgress(_CamelModel):
    version: str = DATA_VERSION
    last_updated: datetime
    current_position: int = 0
    last_study_date: datetime

    # 응답 이력 (문제 번호 → 응답, 1-based)
    answers: Dict[int, QuestionAnswer] = Field(default_factory=dict)

    statistics: LearningStatistics = Field(default_factory=LearningStatistics)
    review: ReviewData = Field(default_factory=ReviewData)
    session: SessionData

    # 날짜별 학습 기록 (YYYY-MM-DD → 기록)
    daily_records: Dict[str, DailyStudyRecord] = Field(default_factory=dict)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def create_initial_progress(now: Optional[datetime] = None) -> QuizProgress:
    """모든 카운트 0, 빈 매핑, 시각은 현재로 채운 초기 기록을 생성한다."""
    now = now or utcnow()
    return QuizProgress(
        version=DATA_VERSION,
        last_updated=now,
        current_position=0,
        last_study_date=now,
        session=SessionData(
            start_time=now,
            last_active_time=now,
            session_duration_minutes=0,
        ),
    )


def progress_key(source_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}_{source_id}"


def session_start_key(source_id: str) -> str:
    return f"{SESSION_START_KEY_PREFIX}_{source_id}"
