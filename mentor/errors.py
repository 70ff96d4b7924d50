"""Error taxonomy for the mentor API.

Every error carries a user-facing ``message`` and the HTTP status the API
answers with. Failures of the completion endpoint and of structured replies
also keep a ``detail`` string for the logs.
"""
from __future__ import annotations


class MentorError(Exception):
    def __init__(self, message: str, status_code: int = 400, detail: str | None = None):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class ValidationError(MentorError):
    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, 422)


class NotFoundError(MentorError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class InvalidTransitionError(MentorError):
    def __init__(self, message: str = "That step is not available right now"):
        super().__init__(message, 409)


class RequestInFlightError(MentorError):
    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A {action} request is already in progress", 409)


class SessionClosedError(MentorError):
    def __init__(self, message: str = "This session has ended"):
        super().__init__(message, 410)


class NetworkError(MentorError):
    def __init__(self, detail: str):
        super().__init__(
            "I'm having trouble connecting right now. Please try again in a moment.",
            502,
            detail,
        )


class MalformedResponseError(MentorError):
    def __init__(self, detail: str):
        super().__init__("The AI service sent an unexpected response. Please try again.", 502, detail)


class ExtractionError(MentorError):
    def __init__(self, detail: str):
        super().__init__("Could not read the AI response. Please try again.", 502, detail)


class SchemaValidationError(MentorError):
    def __init__(self, detail: str):
        super().__init__("The AI response was incomplete. Please try again.", 502, detail)


class AuthenticationError(MentorError):
    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, 401)
