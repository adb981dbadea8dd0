"""
services/quiz_controller.py — 문제 풀이 세션 컨트롤러

화면(view) 계층이 호출하는 진입점.
  - 메모리 상태: 문제 리스트, 현재 위치, 문제별 응답/정답 배열 (0-based, 문제 리스트와 인덱스 정렬)
  - 영구 기록:   ProgressStore (answers 는 문제 번호 1-based)
  - 세션 시간:   SessionTimer 가 1초마다 tick → 60틱마다 SessionAccounter.update

수명 주기:
  load()  → 문제 읽기, 위치/응답 복원, 세션 시작, 타이머 시작
  close() → 타이머 정지, 마지막 갱신, 세션 종료 (호스트가 종료 시 반드시 호출)
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence, Union

from config import TIMER_TICK_SECONDS, UPDATE_EVERY_TICKS
from quiz_tracker.models.progress_model import LearningStatistics
from quiz_tracker.models.question_model import Question
from quiz_tracker.services.data_sources import (
    AVAILABLE_DATA_SOURCES,
    DATA_SOURCE_STORAGE_KEY,
    DEFAULT_DATA_SOURCE_ID,
    DataSource,
    registry,
)
from quiz_tracker.services.kv_store import StorageError
from quiz_tracker.services.progress_store import ProgressStore
from quiz_tracker.services.question_loader import QuestionSourceError, load_questions
from quiz_tracker.services.session_accounting import SessionAccounter
from quiz_tracker.services.statistics import (
    accuracy_percent,
    is_answer_correct,
    is_multiple_choice,
    split_correct_answer,
)

logger = logging.getLogger(__name__)

Answer = Union[str, List[str]]
QuestionSource = Callable[[str], List[Question]]


class SessionTimer:
    """콜백을 데몬 스레드에서 일정 간격으로 호출하는 반복 타이머."""

    def __init__(self, callback: Callable[[], None], interval: float = TIMER_TICK_SECONDS) -> None:
        self.callback = callback
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self.stop()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, args=(self._stop,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1.0)

    def _loop(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception("세션 타이머 콜백 오류")


class QuizController:
    def __init__(
        self,
        store: ProgressStore,
        sources: Optional[List[DataSource]] = None,
        question_source: QuestionSource = load_questions,
        accounter: Optional[SessionAccounter] = None,
        timer_interval: float = TIMER_TICK_SECONDS,
        update_every: int = UPDATE_EVERY_TICKS,
        use_timer: bool = True,
    ) -> None:
        self.store = store
        self.sources: Dict[str, DataSource] = registry(sources if sources is not None else AVAILABLE_DATA_SOURCES)
        self.question_source = question_source
        self.accounter = accounter or SessionAccounter(store)
        self.update_every = update_every
        self.use_timer = use_timer
        self.timer = SessionTimer(self.tick, timer_interval)

        self.source_id = self._restore_source_id()
        self.questions: List[Question] = []
        self.current_index = 0
        self.user_answers: List[Optional[Answer]] = []
        self.correct_answers: List[List[str]] = []
        self.is_loading = False
        self.load_error: Optional[str] = None
        self.session_time = 0
        self._session_active = False

    def __enter__(self) -> "QuizController":
        self.load()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── 데이터 소스 ─────────────────────────────────────────────────────────

    def _restore_source_id(self) -> str:
        try:
            saved = self.store.durable.get(DATA_SOURCE_STORAGE_KEY)
        except (StorageError, OSError) as e:
            logger.error(f"선택된 데이터 소스 읽기 실패: {e}")
            saved = None
        if saved and saved in self.sources:
            return saved
        if DEFAULT_DATA_SOURCE_ID in self.sources:
            return DEFAULT_DATA_SOURCE_ID
        return next(iter(self.sources))

    @property
    def data_source(self) -> DataSource:
        return self.sources[self.source_id]

    def change_data_source(self, source_id: str) -> bool:
        if source_id not in self.sources:
            logger.error(f"알 수 없는 데이터 소스: {source_id}")
            return False

        self._end_session()
        self.source_id = source_id
        try:
            self.store.durable.set(DATA_SOURCE_STORAGE_KEY, source_id)
        except (StorageError, OSError) as e:
            logger.error(f"데이터 소스 선택 저장 실패: {e}")
        self.session_time = 0

        logger.info(f"데이터 소스 전환: {source_id}")
        self.load()
        return True

    # ── 수명 주기 ───────────────────────────────────────────────────────────

    def load(self) -> bool:
        """문제를 읽고 진행 기록을 복원한 뒤 세션을 시작한다. 실패 시 False."""
        self.is_loading = True
        self.load_error = None
        try:
            questions = self.question_source(self.data_source.file_path)
        except QuestionSourceError as e:
            logger.error(f"문제 읽기 오류: {e}")
            self.load_error = str(e)
            self.questions = []
            self.user_answers = []
            self.correct_answers = []
            self.current_index = 0
            self.is_loading = False
            return False

        self.questions = questions
        self.user_answers = [None] * len(questions)
        self.correct_answers = [[] for _ in questions]

        sid = self.source_id
        with self.store.locked(sid):
            progress = self.store.load(sid)

            position = progress.current_position
            self.current_index = position if 0 <= position < len(questions) else 0

            # 1-based 문제 번호 → 0-based 인덱스
            for number, answer in progress.answers.items():
                index = int(number) - 1
                if 0 <= index < len(questions):
                    correct_answer = questions[index].correct_answer
                    self.user_answers[index] = _restore_answer(
                        answer.user_answer, is_multiple_choice(correct_answer)
                    )
                    self.correct_answers[index] = split_correct_answer(correct_answer)

            progress.statistics.total_questions = len(questions)
            progress.last_study_date = self.store.clock()
            self.store.save(progress, sid)

        self.accounter.start(sid)
        self._session_active = True
        if self.use_timer:
            self.timer.start()

        self.is_loading = False
        logger.info(
            f"[{sid}] 문제 읽기 완료: {len(questions)}문항, 복원 위치 {self.current_index + 1}번"
        )
        return True

    def tick(self) -> None:
        """타이머 한 틱. update_every 틱마다 세션 시간을 반영한다."""
        self.session_time += 1
        if self.session_time % self.update_every == 0:
            self.accounter.update(self.source_id)

    def close(self) -> None:
        self._end_session()

    def _end_session(self) -> None:
        self.timer.stop()
        if not self._session_active:
            return
        self.accounter.end(self.source_id)
        self._session_active = False

    # ── 사용자 동작 ─────────────────────────────────────────────────────────

    def submit_answer(self, answer: Answer) -> Optional[bool]:
        """
        현재 문제에 응답한다. 현재 문제가 없으면 아무것도 하지 않고 None.

        Returns:
            화면 상태 기준 정오 (복수 선택은 개수/구성 일치, 단일 선택은 정답 포함 여부).
        """
        question = self.current_question
        if question is None:
            return None

        index = self.current_index
        if not isinstance(answer, str):
            answer = list(answer)
        correct = split_correct_answer(question.correct_answer)
        self.user_answers[index] = answer
        self.correct_answers[index] = correct

        answer_string = answer if isinstance(answer, str) else ",".join(answer)
        self.store.save_answer(question.number, answer_string, question.correct_answer, self.source_id)

        # 세션 정보도 함께 갱신해 통계를 동기화
        self.accounter.update(self.source_id)

        logger.info(
            f"문제{question.number} 응답: {answer_string} (정답: {question.correct_answer}) "
            f"정답률={self.accuracy}% 정답수={self.correct_count} "
            f"응답수={self.answered_count} 오답={self.incorrect_list}"
        )
        return is_answer_correct(answer, correct)

    def go_to_question(self, index: int) -> bool:
        if not 0 <= index < len(self.questions):
            return False
        self.current_index = index
        self.store.save_current_position(index, self.source_id)
        logger.info(f"문제{index + 1}로 이동")
        return True

    def reset_progress(self) -> None:
        """현재 소스의 학습 데이터를 지우고 다시 읽는다."""
        self.timer.stop()
        self._session_active = False
        self.store.reset(self.source_id)
        self.session_time = 0
        self.load()

    def export_progress(self) -> str:
        return self.store.export()

    # ── 계산 값 ─────────────────────────────────────────────────────────────

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def progress(self) -> float:
        if not self.questions:
            return 0
        return (self.current_index + 1) / len(self.questions) * 100

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.user_answers if a is not None)

    @property
    def correct_count(self) -> int:
        return sum(
            1
            for a, correct in zip(self.user_answers, self.correct_answers)
            if a is not None and correct and is_answer_correct(a, correct)
        )

    @property
    def accuracy(self) -> int:
        return accuracy_percent(self.correct_count, self.answered_count)

    @property
    def incorrect_list(self) -> List[int]:
        return [
            i + 1
            for i, (a, correct) in enumerate(zip(self.user_answers, self.correct_answers))
            if a is not None and correct and not is_answer_correct(a, correct)
        ]

    @property
    def learning_stats(self) -> LearningStatistics:
        return self.store.get_statistics(self.source_id)

    @staticmethod
    def is_multiple_choice(question: Question) -> bool:
        return is_multiple_choice(question.correct_answer)


def _restore_answer(stored: Union[str, Sequence[str]], multiple: bool) -> Answer:
    # 복수 선택 문제는 한 개만 고른 응답도 리스트로 되돌린다
    if isinstance(stored, str):
        parts = split_correct_answer(stored)
        return parts if multiple or len(parts) > 1 else stored
    return list(stored)
