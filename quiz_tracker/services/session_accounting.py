"""
services/session_accounting.py

학습 세션 시간 집계.

세션 경계 판정:
  - 휘발성 저장소에 세션 마커가 없거나 마지막 마커로부터 30분을 넘기면 새 세션
  - 새 세션일 때만 sessions_count 증가

누적 시간 반영 (중복 방지):
  session.session_duration_minutes 는 현재 세션 중 이미 누적 합계에 더해진 분 수.
  갱신 시 (세션 경과 분 - 이전 기록 분) 증분만 누적 합계와 오늘 기록에 더한다.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from config import SESSION_GAP_MINUTES
from quiz_tracker.models.progress_model import QuizProgress
from quiz_tracker.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


@dataclass
class SessionFlush:
    """한 번의 세션 시간 반영 결과."""

    session_minutes: int
    added_minutes: int
    total_minutes: int


def elapsed_minutes(start: datetime, now: datetime) -> int:
    return math.floor((now - start).total_seconds() / 60)


class SessionAccounter:
    def __init__(self, store: ProgressStore, gap_minutes: int = SESSION_GAP_MINUTES) -> None:
        self.store = store
        self.gap = timedelta(minutes=gap_minutes)

    def start(self, source_id: Optional[str] = None) -> bool:
        """
        세션 시작. 새 세션이면 True.

        같은 세션이 이어지는 경우(새로고침) 마커를 지금으로 다시 쓰므로
        이미 반영된 분 수를 0으로 되돌려 경과 시간이 새 마커부터 온전히 더해지게 한다.

        새 세션일 때는 session_duration_minutes 를 초기화하지 않는다.
        새 세션이 이전 세션의 반영 분 수보다 짧은 동안은 증분이 음수가 되어
        시간이 더해지지 않는다 (회귀 테스트로 고정된 현재 동작).
        """
        with self.store.locked(source_id) as sid:
            progress = self.store.load(sid)
            now = self.store.clock()

            marker = self.store.get_session_marker(sid)
            is_new_session = marker is None or now - marker > self.gap

            progress.session.start_time = now
            progress.session.last_active_time = now

            if is_new_session:
                progress.statistics.sessions_count += 1
                logger.info(f"[{sid}] 새 학습 세션 시작: {progress.statistics.sessions_count}회차")
            else:
                progress.session.session_duration_minutes = 0
                logger.info(f"[{sid}] 학습 세션 이어서 진행")

            self.store.save(progress, sid)
            self.store.set_session_marker(now, sid)
            return is_new_session

    def update(self, source_id: Optional[str] = None) -> SessionFlush:
        """경과 시간 중 아직 반영되지 않은 증분을 누적 합계에 더한다."""
        with self.store.locked(source_id) as sid:
            progress = self.store.load(sid)
            result = self._flush(progress, sid)
            self.store.save(progress, sid)
            logger.debug(f"[{sid}] 세션 갱신: {result}")
            return result

    def end(self, source_id: Optional[str] = None) -> SessionFlush:
        """update 와 같은 방식으로 마지막 증분을 반영한 뒤 세션 마커를 지운다."""
        with self.store.locked(source_id) as sid:
            progress = self.store.load(sid)
            result = self._flush(progress, sid)
            self.store.save(progress, sid)
            self.store.clear_session_marker(sid)

            today = progress.daily_records.get(self.store.today())
            logger.info(
                f"[{sid}] 세션 종료: 세션시간={result.session_minutes}분 "
                f"누적학습시간={result.total_minutes}분 "
                f"오늘학습시간={today.study_time_minutes if today else 0}분 "
                f"학습횟수={progress.statistics.sessions_count}"
            )
            return result

    def _flush(self, progress: QuizProgress, sid: str) -> SessionFlush:
        now = self.store.clock()
        started = self.store.get_session_marker(sid) or progress.session.start_time

        session_minutes = elapsed_minutes(started, now)
        previous = progress.session.session_duration_minutes or 0
        added = session_minutes - previous

        progress.session.session_duration_minutes = session_minutes
        progress.session.last_active_time = now

        if added > 0:
            progress.statistics.total_study_time_minutes += added
            self.store.add_daily_minutes(progress, added)
        else:
            added = 0

        return SessionFlush(
            session_minutes=session_minutes,
            added_minutes=added,
            total_minutes=progress.statistics.total_study_time_minutes,
        )
