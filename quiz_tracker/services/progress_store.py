"""
services/progress_store.py

학습 진행 기록 저장 게이트웨이.
Public API (모두 데이터 소스 ID 단위):
  - load(source_id) -> QuizProgress       : 영구 저장소에서 읽기 (실패 시 초기 기록)
  - save(progress, source_id)             : lastUpdated 갱신 후 쓰기 (실패는 로그만)
  - reset(source_id)                      : 진행 기록 + 세션 마커 삭제
  - export() -> str                       : 기본 소스 기록을 들여쓰기 JSON으로 반환
  - save_answer / save_current_position   : 읽기-수정-쓰기 단위 갱신
  - 일별 학습 기록 갱신 및 조회

설계 원칙:
- 저장소 읽기/쓰기 오류는 호출자에게 전파하지 않는다 (항상 "새로 시작"으로 강등)
- 스키마 버전이 다르면 마이그레이션 없이 폐기
- 소스별 RLock 으로 load-mutate-save 구간을 직렬화
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError

from quiz_tracker.models.progress_model import (
    DATA_VERSION,
    DailyStudyRecord,
    LearningStatistics,
    QuestionAnswer,
    QuizProgress,
    create_initial_progress,
    progress_key,
    session_start_key,
    utcnow,
)
from quiz_tracker.services.data_sources import DEFAULT_DATA_SOURCE_ID
from quiz_tracker.services.kv_store import KeyValueStore, StorageError
from quiz_tracker.services.statistics import (
    grade_stored_answer,
    recompute_review,
    recompute_statistics,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def local_date_string(moment: datetime) -> str:
    """시각을 로컬 시간대 기준 YYYY-MM-DD 로 변환."""
    return moment.astimezone().date().isoformat()


class ProgressStore:
    """
    QuizProgress 와 영구/휘발성 저장소 사이의 게이트웨이.

    Args:
        durable:           새로고침 후에도 유지되는 저장소 (용량 제한 있음).
        volatile:          브라우징 컨텍스트(프로세스) 수명 동안만 유지되는 저장소.
        clock:             현재 시각(UTC, timezone-aware)을 반환하는 함수.
        default_source_id: 소스 ID 생략 시 사용할 기본 소스.
    """

    def __init__(
        self,
        durable: KeyValueStore,
        volatile: KeyValueStore,
        clock: Clock = utcnow,
        default_source_id: str = DEFAULT_DATA_SOURCE_ID,
    ) -> None:
        self.durable = durable
        self.volatile = volatile
        self.clock = clock
        self.default_source_id = default_source_id
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ── 동시성 ───────────────────────────────────────────────────────────────

    @contextmanager
    def locked(self, source_id: Optional[str] = None) -> Iterator[str]:
        """소스 단위 load-mutate-save 구간을 직렬화한다. 해석된 소스 ID를 돌려준다."""
        sid = source_id or self.default_source_id
        with self._locks_guard:
            lock = self._locks.setdefault(sid, threading.RLock())
        with lock:
            yield sid

    # ── 기본 입출력 ─────────────────────────────────────────────────────────

    def load(self, source_id: Optional[str] = None) -> QuizProgress:
        sid = source_id or self.default_source_id
        try:
            stored = self.durable.get(progress_key(sid))
            if not stored:
                return create_initial_progress(self.clock())

            data = json.loads(stored)
            if not isinstance(data, dict):
                raise ValueError("진행 기록이 JSON 객체가 아닙니다.")

            if data.get("version") != DATA_VERSION:
                logger.warning(f"[{sid}] 진행 기록 버전 불일치 ({data.get('version')!r}). 새로 생성합니다.")
                return create_initial_progress(self.clock())

            # 하위 호환: dailyRecords 필드가 없던 시절의 기록
            if data.get("dailyRecords") is None:
                data["dailyRecords"] = {}
                logger.info(f"[{sid}] 하위 호환을 위해 dailyRecords 필드를 추가했습니다.")

            return QuizProgress.model_validate(data)
        except (StorageError, OSError, ValueError, ValidationError) as e:
            # json.JSONDecodeError 는 ValueError 의 하위 클래스
            logger.error(f"[{sid}] 진행 기록 읽기 실패: {e}")
            return create_initial_progress(self.clock())

    def save(self, progress: QuizProgress, source_id: Optional[str] = None) -> None:
        sid = source_id or self.default_source_id
        try:
            progress.last_updated = self.clock()
            self.durable.set(progress_key(sid), progress.to_json())
        except (StorageError, OSError) as e:
            logger.error(f"[{sid}] 진행 기록 저장 실패: {e}")

    def reset(self, source_id: Optional[str] = None) -> None:
        with self.locked(source_id) as sid:
            try:
                self.durable.remove(progress_key(sid))
            except (StorageError, OSError) as e:
                logger.error(f"[{sid}] 진행 기록 삭제 실패: {e}")
            self.volatile.remove(session_start_key(sid))
            logger.info(f"[{sid}] 학습 데이터를 초기화했습니다.")

    def export(self) -> str:
        return self.load(self.default_source_id).to_json(indent=2)

    # ── 세션 마커 (휘발성 저장소) ────────────────────────────────────────────

    def get_session_marker(self, source_id: Optional[str] = None) -> Optional[datetime]:
        sid = source_id or self.default_source_id
        raw = self.volatile.get(session_start_key(sid))
        if not raw:
            return None
        try:
            marker = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning(f"[{sid}] 세션 마커 형식 오류: {raw!r}")
            return None
        if marker.tzinfo is None:
            marker = marker.replace(tzinfo=timezone.utc)
        return marker

    def set_session_marker(self, moment: datetime, source_id: Optional[str] = None) -> None:
        sid = source_id or self.default_source_id
        self.volatile.set(session_start_key(sid), moment.isoformat())

    def clear_session_marker(self, source_id: Optional[str] = None) -> None:
        sid = source_id or self.default_source_id
        self.volatile.remove(session_start_key(sid))

    # ── 응답 / 위치 기록 ─────────────────────────────────────────────────────

    def save_answer(
        self,
        question_number: int,
        user_answer: str,
        correct_answer: str,
        source_id: Optional[str] = None,
    ) -> QuestionAnswer:
        """
        응답을 기록하고 통계/복습 데이터를 다시 계산한 뒤 저장한다.

        같은 문제에 다시 응답하면 attempt_count 만 증가하고
        first_answered_at 은 유지된다.
        """
        with self.locked(source_id) as sid:
            progress = self.load(sid)
            now = self.clock()
            is_correct = grade_stored_answer(user_answer, correct_answer)

            existing = progress.answers.get(question_number)
            if existing is None:
                existing = QuestionAnswer(
                    user_answer=user_answer,
                    is_correct=is_correct,
                    attempt_count=1,
                    first_answered_at=now,
                    last_answered_at=now,
                )
                progress.answers[question_number] = existing
            else:
                existing.user_answer = user_answer
                existing.is_correct = is_correct
                existing.attempt_count += 1
                existing.last_answered_at = now

            recompute_statistics(progress)
            recompute_review(progress)

            stats = progress.statistics
            logger.info(
                f"[{sid}] 문제{question_number} 응답 기록: 응답={user_answer} 정답={correct_answer} "
                f"정오={is_correct} 시도={existing.attempt_count} "
                f"누적응답={stats.answered_questions} 누적정답={stats.correct_answers} "
                f"정답률={stats.accuracy}%"
            )

            self.save(progress, sid)
            return existing

    def save_current_position(self, position: int, source_id: Optional[str] = None) -> None:
        with self.locked(source_id) as sid:
            progress = self.load(sid)
            progress.current_position = position
            progress.last_study_date = self.clock()
            self.save(progress, sid)

    # ── 조회 ─────────────────────────────────────────────────────────────────

    def get_statistics(self, source_id: Optional[str] = None) -> LearningStatistics:
        return self.load(source_id).statistics

    def get_incorrect_questions(self, source_id: Optional[str] = None) -> List[int]:
        return self.load(source_id).review.incorrect_questions

    # ── 일별 학습 기록 ───────────────────────────────────────────────────────

    def today(self) -> str:
        return local_date_string(self.clock())

    def add_daily_minutes(
        self,
        progress: QuizProgress,
        minutes: int,
        questions_answered: Optional[int] = None,
        correct_answers: Optional[int] = None,
    ) -> DailyStudyRecord:
        """오늘 기록을 찾거나 만들어 학습 시간을 더한다 (메모리 상의 기록만 수정)."""
        today = self.today()
        record = progress.daily_records.get(today)
        if record is None:
            record = DailyStudyRecord(date=today)
            progress.daily_records[today] = record

        record.study_time_minutes += minutes
        if questions_answered is not None:
            record.questions_answered = questions_answered
        if correct_answers is not None:
            record.correct_answers = correct_answers
        return record

    def update_today_study_record(
        self,
        study_time_minutes: int,
        source_id: Optional[str] = None,
        questions_answered: Optional[int] = None,
        correct_answers: Optional[int] = None,
    ) -> DailyStudyRecord:
        with self.locked(source_id) as sid:
            progress = self.load(sid)
            record = self.add_daily_minutes(
                progress, study_time_minutes, questions_answered, correct_answers
            )
            self.save(progress, sid)
            return record

    def get_today_study_time(self, source_id: Optional[str] = None) -> int:
        record = self.load(source_id).daily_records.get(self.today())
        return record.study_time_minutes if record else 0

    def get_weekly_study_records(self, source_id: Optional[str] = None) -> List[DailyStudyRecord]:
        """오늘을 포함한 최근 7일 기록 (오래된 날짜 먼저). 기록 없는 날은 0으로 채운다."""
        progress = self.load(source_id)
        today = self.clock().astimezone().date()
        records: List[DailyStudyRecord] = []
        for offset in range(6, -1, -1):
            date = (today - timedelta(days=offset)).isoformat()
            records.append(progress.daily_records.get(date) or DailyStudyRecord(date=date))
        return records
