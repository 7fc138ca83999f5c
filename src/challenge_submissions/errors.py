"""
Classified failures raised by the submission ingestion pipeline.

Every failure a client can observe is a ``SubmissionError`` subclass.  The
``kind`` attribute names the failure class and is what logs and tests key on;
the string form is the plain-text message returned to the caller.
"""

from __future__ import annotations


class SubmissionError(Exception):
    """Base class for every classified ingestion failure."""

    kind = "SubmissionError"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MalformedContentType(SubmissionError):
    kind = "MalformedContentType"


class MalformedPart(SubmissionError):
    kind = "MalformedPart"


class DecodeFailure(SubmissionError):
    kind = "DecodeFailure"


class InvalidIdentifier(SubmissionError):
    kind = "InvalidIdentifier"


class AuthenticationFailure(SubmissionError):
    kind = "AuthenticationFailure"

    def __init__(self, message: str = "authentication failure") -> None:
        super().__init__(message)


class NotFound(SubmissionError):
    kind = "NotFound"

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)


class StorageFailure(SubmissionError):
    kind = "StorageFailure"
