from quizportal.core.errors import QuizPortalError


class QuizModelError(QuizPortalError):
    pass


class InvalidQuestionError(QuizModelError):
    pass


class NotObjectiveQuestionError(QuizModelError):
    pass


class UnknownQuestionError(QuizModelError):
    pass
