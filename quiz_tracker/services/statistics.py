"""
services/statistics.py

정답 판정 및 학습 통계/복습 데이터 재계산 로직.
순수 Python 함수로 구성. 저장소 접근 없음.
통계는 응답 이력 전체로부터 매번 새로 계산한다 (증분 갱신 없음).
"""

import re
from typing import List, Optional, Sequence, Union

from quiz_tracker.models.progress_model import QuizProgress

_ANSWER_DELIMITER = re.compile(r"[,、]")

AnswerValue = Union[str, Sequence[str]]


def split_correct_answer(correct_answer: str) -> List[str]:
    """
    정답 필드를 ',' 또는 '、' 기준으로 분리한다.

    Returns:
        공백 제거 후 비어 있지 않은 정답 코드 리스트. 원본 순서 유지.
    """
    return [a.strip() for a in _ANSWER_DELIMITER.split(correct_answer or "") if a.strip()]


def is_multiple_choice(correct_answer: str) -> bool:
    return bool(_ANSWER_DELIMITER.search(correct_answer or ""))


def is_answer_correct(user_answer: Optional[AnswerValue], correct_answers: Sequence[str]) -> bool:
    """
    화면 상태 기준 정답 판정.

    판정 기준:
    - 복수 선택(리스트): 개수가 같고 모든 선택이 정답에 포함되어야 정답
    - 단일 선택(문자열): 정답 목록에 포함되면 정답
    - 미응답(None, 빈 값): 오답
    """
    if not user_answer:
        return False
    if isinstance(user_answer, str):
        return user_answer in correct_answers
    return (
        len(user_answer) == len(correct_answers)
        and all(a in correct_answers for a in user_answer)
    )


def grade_stored_answer(user_answer: str, correct_answer: str) -> bool:
    """
    저장용 정답 판정. ',' 로 결합된 응답과 정답 필드를 집합으로 비교한다.

    개수와 구성 원소가 정확히 일치해야 정답 (예: 'A' vs 'A,B' → 오답).
    """
    given = split_correct_answer(user_answer)
    expected = split_correct_answer(correct_answer)
    return bool(given) and len(given) == len(expected) and set(given) == set(expected)


def recompute_statistics(progress: QuizProgress) -> None:
    """응답 수, 정답 수, 정답률(반올림 정수)을 응답 이력 전체로 다시 계산한다."""
    answers = list(progress.answers.values())
    correct = sum(1 for a in answers if a.is_correct)

    stats = progress.statistics
    stats.answered_questions = len(answers)
    stats.correct_answers = correct
    stats.accuracy = accuracy_percent(correct, len(answers))


def recompute_review(progress: QuizProgress) -> None:
    """
    복습 데이터를 다시 계산한다.

    - incorrect_questions: 현재 응답이 오답인 문제
    - mastered_questions:  첫 시도에 정답 (attempt_count == 1 이고 정답)
    - needs_review:        오답 목록과 동일
    모든 목록은 문제 번호 오름차순.
    """
    incorrect: List[int] = []
    mastered: List[int] = []

    for number, answer in progress.answers.items():
        if not answer.is_correct:
            incorrect.append(int(number))
        elif answer.attempt_count == 1:
            mastered.append(int(number))

    incorrect.sort()
    mastered.sort()
    progress.review.incorrect_questions = incorrect
    progress.review.mastered_questions = mastered
    progress.review.needs_review = list(incorrect)


def accuracy_percent(correct: int, answered: int) -> int:
    return _round_half_up(correct / answered * 100) if answered else 0


def _round_half_up(value: float) -> int:
    # round() 는 은행가 반올림이므로 .5 는 올림 처리
    return int(value + 0.5)
