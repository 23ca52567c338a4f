"""
Exceptions raised by the backend client and the AI service
"""
from typing import Optional


class BackendError(Exception):
    """A request to the hosted backend failed"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def is_rls_violation(self) -> bool:
        return "row-level security" in self.message.lower()


class AuthError(BackendError):
    """Missing session, bad credentials or rejected token"""


class NotFoundError(BackendError):
    """Single-row query matched nothing"""


class BackendTimeout(BackendError):
    """The backend did not answer within the client timeout"""


class AIServiceError(Exception):
    """The LLM endpoint could not be reached or returned nothing"""


class AIParseError(AIServiceError, ValueError):
    """The LLM reply was not usable JSON or failed validation"""
