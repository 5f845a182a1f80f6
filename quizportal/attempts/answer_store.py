from __future__ import annotations

from collections.abc import Iterable, Mapping

from quizportal.attempts.errors import SessionClosedError
from quizportal.attempts.types import Answer
from quizportal.quizzes.types import AnswerValue, MultiOptionAnswer, OptionAnswer, TextAnswer


class AnswerStore:
    """In-memory answers of one attempt, keyed by question id.

    Mutations replace the whole answer for their own key and return it; grading
    fields are dropped because a changed answer has not been scored yet.
    """

    def __init__(self, answers: Mapping[str, Answer] | None = None) -> None:
        self._answers: dict[str, Answer] = {}
        self._frozen = False
        for question_id, answer in (answers or {}).items():
            self._answers[question_id] = Answer(
                question_id=question_id,
                value=answer.value,
                is_correct=answer.is_correct,
                points_earned=answer.points_earned,
                feedback=answer.feedback,
            )

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def get(self, question_id: str) -> Answer | None:
        return self._answers.get(question_id)

    def snapshot(self) -> dict[str, Answer]:
        return dict(self._answers)

    def __len__(self) -> int:
        return len(self._answers)

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._answers

    def is_answered(self, question_id: str) -> bool:
        answer = self._answers.get(question_id)
        if answer is None:
            return False
        value = answer.value
        if isinstance(value, OptionAnswer):
            return bool(value.option_id)
        if isinstance(value, MultiOptionAnswer):
            return bool(value.option_ids)
        return bool(value.text.strip())

    def answered_count(self, question_ids: Iterable[str]) -> int:
        return sum(1 for question_id in question_ids if self.is_answered(question_id))

    def set_option_answer(self, question_id: str, option_id: str) -> Answer:
        return self._replace(question_id, OptionAnswer(option_id=option_id))

    def set_multi_select_answer(self, question_id: str, option_ids: Iterable[str]) -> Answer:
        return self._replace(question_id, MultiOptionAnswer(option_ids=frozenset(option_ids)))

    def set_text_answer(self, question_id: str, text: str) -> Answer:
        return self._replace(question_id, TextAnswer(text=text))

    def _replace(self, question_id: str, value: AnswerValue) -> Answer:
        if self._frozen:
            raise SessionClosedError("answers are read-only after submission")
        answer = Answer(question_id=question_id, value=value)
        self._answers[question_id] = answer
        return answer
