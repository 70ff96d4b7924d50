# schemas.py

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator, model_validator

# --------------------------
# Quiz schema
# --------------------------
class QuizItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: StrictStr
    options: List[StrictStr]
    correct_answer: StrictInt = Field(alias="correctAnswer")
    explanation: StrictStr
    memory_tip: Optional[StrictStr] = Field(default=None, alias="memoryTip")

    @field_validator("question", "explanation")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _check_options(self):
        if len(self.options) != 4:
            raise ValueError(f"expected exactly 4 options, got {len(self.options)}")
        if not all(o.strip() for o in self.options):
            raise ValueError("options must not be empty")
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(f"correctAnswer {self.correct_answer} does not index an option")
        return self

    def is_correct(self, answer_index: int) -> bool:
        return answer_index == self.correct_answer

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

# --------------------------
# Flashcard schema
# --------------------------
class Flashcard(BaseModel):
    question: StrictStr
    answer: StrictStr

    @field_validator("question", "answer")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def to_dict(self) -> dict:
        return self.model_dump()

# --------------------------
# Study resource schema
# --------------------------
class StudyResource(BaseModel):
    title: StrictStr
    type: Literal["article", "video", "practice", "reference"]
    description: StrictStr
    url: Optional[StrictStr] = None

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)
