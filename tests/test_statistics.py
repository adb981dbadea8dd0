import pytest

from quiz_tracker.models.progress_model import QuestionAnswer, create_initial_progress
from quiz_tracker.services.statistics import (
    accuracy_percent,
    grade_stored_answer,
    is_answer_correct,
    is_multiple_choice,
    recompute_review,
    recompute_statistics,
    split_correct_answer,
)


def _answer(now, correct, attempts=1):
    return QuestionAnswer(
        user_answer="A",
        is_correct=correct,
        attempt_count=attempts,
        first_answered_at=now,
        last_answered_at=now,
    )


def test_split_correct_answer_accepts_both_delimiters():
    assert split_correct_answer("A") == ["A"]
    assert split_correct_answer("A, B") == ["A", "B"]
    assert split_correct_answer("C、D") == ["C", "D"]
    assert split_correct_answer("A,,") == ["A"]
    assert is_multiple_choice("A,B")
    assert is_multiple_choice("A、B")
    assert not is_multiple_choice("A")


@pytest.mark.parametrize(
    "user_answer, correct, expected",
    [
        ("A", ["A"], True),
        ("B", ["A"], False),
        ("A", ["A", "B"], True),
        (["A", "B"], ["A", "B"], True),
        (["B", "A"], ["A", "B"], True),
        (["A"], ["A", "B"], False),
        (["A", "B", "C"], ["A", "B"], False),
        (None, ["A"], False),
        ([], ["A"], False),
    ],
)
def test_is_answer_correct(user_answer, correct, expected):
    assert is_answer_correct(user_answer, correct) is expected


def test_grade_stored_answer_is_exact_set_match():
    assert grade_stored_answer("A", "A")
    assert grade_stored_answer("A,B", "A,B")
    assert grade_stored_answer("B,A", "A、B")
    assert not grade_stored_answer("A", "A,B")
    assert not grade_stored_answer("A,B,C", "A,B")
    assert not grade_stored_answer("", "A")


def test_accuracy_rounds_half_up():
    assert accuracy_percent(0, 0) == 0
    assert accuracy_percent(1, 3) == 33
    assert accuracy_percent(2, 3) == 67
    assert accuracy_percent(1, 8) == 13  # 12.5


def test_recompute_statistics_counts_every_answer(clock):
    progress = create_initial_progress(clock())
    now = clock()
    progress.answers = {1: _answer(now, True), 2: _answer(now, False), 3: _answer(now, True, attempts=3)}

    recompute_statistics(progress)

    assert progress.statistics.answered_questions == 3
    assert progress.statistics.correct_answers == 2
    assert progress.statistics.accuracy == 67


def test_recompute_statistics_with_no_answers(clock):
    progress = create_initial_progress(clock())
    recompute_statistics(progress)
    assert progress.statistics.accuracy == 0
    assert progress.statistics.answered_questions == 0


def test_recompute_review_partitions_and_sorts(clock):
    progress = create_initial_progress(clock())
    now = clock()
    progress.answers = {
        10: _answer(now, False),
        2: _answer(now, True),
        9: _answer(now, True, attempts=2),
        1: _answer(now, False, attempts=4),
        5: _answer(now, True),
    }

    recompute_review(progress)

    assert progress.review.incorrect_questions == [1, 10]
    assert progress.review.needs_review == [1, 10]
    # 두 번째 이후 시도에서 맞힌 문제(9)는 습득 목록에 없다
    assert progress.review.mastered_questions == [2, 5]
