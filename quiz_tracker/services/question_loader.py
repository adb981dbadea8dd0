"""
services/question_loader.py

CSV 문제은행 로더.
Public API:
  - load_questions(path) -> List[Question]
  - parse_questions(text) -> List[Question]

처리 규칙:
- UTF-8 BOM 제거, 헤더/값 앞뒤 공백 제거
- 빈 행, 필수 필드가 비어 있는 행은 스킵 (행 번호 로그)
- number 가 정수가 아니면 순번으로 대체
- 큰따옴표 안의 쉼표/줄바꿈 허용
"""

import csv
import io
import logging
from typing import List

from pydantic import ValidationError

from quiz_tracker.models.question_model import Question

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = [
    "number",
    "question",
    "choiceA",
    "choiceB",
    "choiceC",
    "choiceD",
    "correct_answer",
    "explanation",
]


class QuestionSourceError(Exception):
    """문제은행을 읽을 수 없는 경우."""


def load_questions(path: str) -> List[Question]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise QuestionSourceError(f"문제 파일을 찾을 수 없습니다: {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise QuestionSourceError(f"문제 파일을 읽을 수 없습니다: {e}") from e

    questions = parse_questions(text)
    logger.info(f"CSV 읽기 완료: {path} ({len(questions)}문항)")
    return questions


def parse_questions(text: str) -> List[Question]:
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text), delimiter=",", quotechar='"')
    try:
        header = [h.strip() for h in next(reader)]
    except StopIteration:
        return []
    except csv.Error as e:
        raise QuestionSourceError(f"CSV 헤더 해석 실패: {e}") from e

    questions: List[Question] = []
    skipped: List[int] = []

    try:
        for row in reader:
            line_no = reader.line_num
            values = [v.strip() for v in row]
            if not any(values):
                continue

            record = dict(zip(header, values))
            missing = [f for f in REQUIRED_FIELDS if not record.get(f)]
            if missing:
                logger.warning(f"행 {line_no} 스킵: 필수 필드 누락 {missing}")
                skipped.append(line_no)
                continue

            try:
                number = int(record["number"])
            except ValueError:
                number = 0
            if number < 1:
                number = len(questions) + 1
            record["number"] = number

            try:
                questions.append(Question.model_validate(record))
            except ValidationError as e:
                logger.warning(f"행 {line_no} 처리 중 오류: {e.errors()[0].get('msg')}")
                skipped.append(line_no)
    except csv.Error as e:
        raise QuestionSourceError(f"CSV 해석 실패 (행 {reader.line_num}): {e}") from e

    if skipped:
        logger.warning(f"스킵된 행: {skipped}")
    return questions
