from quizportal.core.errors import QuizPortalError


class GradingError(QuizPortalError):
    pass


class AttemptNotGradableError(GradingError):
    pass


class ResultsNotAvailableError(GradingError):
    pass
