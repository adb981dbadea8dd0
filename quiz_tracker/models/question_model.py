from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Question(BaseModel):
    """
    자격시험 문제은행 한 문항 모델
    Pydantic v2 적용 (CSV 헤더명을 alias로 사용)
    """
    model_config = ConfigDict(populate_by_name=True)

    number: int = Field(
        ...,
        ge=1,
        description="문제 번호 (1-based, 진행 기록의 키)"
    )
    question: str = Field(
        ...,
        min_length=1,
        description="발문/문제 내용"
    )
    choice_a: str = Field(..., alias="choiceA", min_length=1)
    choice_b: str = Field(..., alias="choiceB", min_length=1)
    choice_c: str = Field(..., alias="choiceC", min_length=1)
    choice_d: str = Field(..., alias="choiceD", min_length=1)
    correct_answer: str = Field(
        ...,
        min_length=1,
        description="정답 코드. 복수 정답은 ',' 또는 '、' 로 구분 (예: 'A,C')"
    )
    explanation: str = Field(
        ...,
        description="해설"
    )

    @field_validator('question', 'correct_answer', 'explanation')
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @property
    def choices(self) -> List[str]:
        return [self.choice_a, self.choice_b, self.choice_c, self.choice_d]
