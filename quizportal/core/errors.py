class QuizPortalError(Exception):
    pass
