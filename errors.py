# errors.py
"""Domain errors raised by the services and rendered by the app's exception handler."""


class ExamError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ExamError):
    status_code = 404
    code = "not_found"


class InvalidState(ExamError):
    status_code = 409
    code = "invalid_state"


class LimitExceeded(ExamError):
    status_code = 400
    code = "limit_exceeded"


class ValidationFailure(ExamError):
    status_code = 422
    code = "validation_failure"


class UpstreamFailure(ExamError):
    status_code = 502
    code = "upstream_failure"


class PersistenceFailure(ExamError):
    status_code = 503
    code = "persistence_failure"
