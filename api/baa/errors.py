from typing import List, Optional


class BaaError(Exception):
    code = "baa_error"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"error": self.code, "detail": self.message}


class Unauthorized(BaaError):
    """Authorization gate denial. The message never says whether the target exists."""

    code = "unauthorized"
    http_status = 403


class ValidationError(BaaError):
    code = "validation_error"
    http_status = 400

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []

    def payload(self) -> dict:
        return {**super().payload(), "fields": self.fields}


class InvalidTransition(BaaError):
    code = "invalid_transition"
    http_status = 409

    def __init__(self, message: str, current_status: str):
        super().__init__(message)
        self.current_status = current_status

    def payload(self) -> dict:
        return {**super().payload(), "current_status": self.current_status}


class NotFound(BaaError):
    code = "not_found"
    http_status = 404


class DependencyFailure(BaaError):
    code = "dependency_failure"
    http_status = 503
