from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, StrictBool, StrictStr, model_validator

from ..runtime_constants import CHOICE_QUESTION_TYPES

QuestionType = Literal["single-choice", "multi-choice", "text-input"]


class Question(BaseModel):
    """A quiz question as authored by the host and mirrored in every snapshot."""

    id: StrictStr = Field(min_length=1, max_length=128)
    text: StrictStr = Field(max_length=2000)
    type: QuestionType
    options: list[StrictStr] | None = None
    graded: StrictBool | None = None
    correctAnswers: list[StrictStr] | None = None

    @model_validator(mode="after")
    def validate_options(self) -> "Question":
        if self.type not in CHOICE_QUESTION_TYPES:
            self.options = None
            return self

        if self.options is None:
            raise ValueError("Choice questions require options")
        if self.graded and len(self.options) < 2:
            raise ValueError("Graded choice questions need at least two options")
        if self.correctAnswers is not None:
            unknown = [answer for answer in self.correctAnswers if answer not in self.options]
            if unknown:
                raise ValueError("Correct answers must be listed among the options")
        return self

    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_QUESTION_TYPES

    @property
    def is_graded(self) -> bool:
        return self.graded is not False and bool(self.correctAnswers)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)
