"""Domain errors raised by the service layer.

`main.py` maps every `AchievaError` to a JSON response carrying its
`status_code`, so services never import FastAPI.
"""


class AchievaError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInput(AchievaError):
    status_code = 400


class Forbidden(AchievaError):
    status_code = 403


class NotFound(AchievaError):
    status_code = 404


class Conflict(AchievaError):
    status_code = 409


class TooManyAttempts(AchievaError):
    status_code = 429


__all__ = ['AchievaError', 'InvalidInput', 'Forbidden', 'NotFound', 'Conflict', 'TooManyAttempts']
