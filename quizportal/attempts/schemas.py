from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quizportal.attempts.types import Answer, Feedback
from quizportal.quizzes.types import (
    AnswerValue,
    MultiOptionAnswer,
    OptionAnswer,
    Question,
    QuestionType,
    TextAnswer,
)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AnswerPayload(_WireModel):
    question_id: str = Field(alias="questionId", min_length=1)
    selected_options: list[str] = Field(default_factory=list, alias="selectedOptions")
    text_answer: str | None = Field(default=None, alias="textAnswer")


class FeedbackPayload(_WireModel):
    comment: str = ""
    score: float | None = None


class GradedAnswerPayload(_WireModel):
    question_id: str = Field(alias="questionId", min_length=1)
    points_earned: float | None = Field(default=None, alias="pointsEarned")
    feedback: FeedbackPayload | None = None

    @field_validator("feedback", mode="before")
    @classmethod
    def _normalize_feedback(cls, value: Any) -> Any:
        # Stored feedback shows up either as a bare comment string or as {comment, score}.
        if isinstance(value, str):
            return {"comment": value}
        return value


class GradeRequest(_WireModel):
    answers: list[GradedAnswerPayload]
    feedback: str | None = None


def answer_to_payload(answer: Answer) -> AnswerPayload:
    value = answer.value
    if isinstance(value, OptionAnswer):
        return AnswerPayload(question_id=answer.question_id, selected_options=[value.option_id])
    if isinstance(value, MultiOptionAnswer):
        return AnswerPayload(
            question_id=answer.question_id,
            selected_options=sorted(value.option_ids),
        )
    return AnswerPayload(question_id=answer.question_id, text_answer=value.text)


def answer_value_from_payload(question: Question, payload: AnswerPayload) -> AnswerValue | None:
    """Decode a wire answer by the question's type; None means nothing selected."""
    if question.question_type in (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE):
        if not payload.selected_options:
            return None
        return OptionAnswer(option_id=payload.selected_options[0])
    if question.question_type == QuestionType.MULTIPLE_SELECT:
        if not payload.selected_options:
            return None
        return MultiOptionAnswer(option_ids=frozenset(payload.selected_options))
    if payload.text_answer is None:
        return None
    return TextAnswer(text=payload.text_answer)


def grades_from_request(request: GradeRequest) -> dict[str, Feedback]:
    grades: dict[str, Feedback] = {}
    for item in request.answers:
        feedback = item.feedback or FeedbackPayload()
        score = item.points_earned if item.points_earned is not None else feedback.score
        grades[item.question_id] = Feedback(score=score, comment=feedback.comment)
    return grades
