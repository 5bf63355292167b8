"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

from typing import Optional

INVALID_STATE = "INVALID_STATE"
CAPTURE_UNAVAILABLE = "CAPTURE_UNAVAILABLE"
RECOGNITION_ERROR = "RECOGNITION_ERROR"
AUTH_FAILED = "AUTH_FAILED"
EMPTY_SCRIPT = "EMPTY_SCRIPT"
REQUEST_IN_FLIGHT = "REQUEST_IN_FLIGHT"
NETWORK_ERROR = "NETWORK_ERROR"
SERVER_ERROR = "SERVER_ERROR"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
FILE_SYSTEM_ERROR = "FILE_SYSTEM_ERROR"
DOWNLOAD_ERROR = "DOWNLOAD_ERROR"

ERROR_MESSAGES = {
    INVALID_STATE: "Operation is not allowed right now.",
    CAPTURE_UNAVAILABLE: "Could not access the microphone. Please check your permissions.",
    RECOGNITION_ERROR: "Speech recognition failed, please record again.",
    AUTH_FAILED: "API key is invalid.",
    EMPTY_SCRIPT: "Please enter your script before analyzing.",
    REQUEST_IN_FLIGHT: "An analysis is already in progress.",
    NETWORK_ERROR: "Network failed, please retry.",
    SERVER_ERROR: "An unknown error occurred.",
    MALFORMED_RESPONSE: "Analysis response format is invalid.",
    FILE_SYSTEM_ERROR: "Could not write the file.",
    DOWNLOAD_ERROR: "Could not download the audio.",
}


class CoachError(Exception):
    code = INVALID_STATE

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)


class InvalidStateError(CoachError):
    code = INVALID_STATE


class CaptureUnavailableError(CoachError):
    """No input device, permission denied, or audio backend missing."""

    code = CAPTURE_UNAVAILABLE


class RecognitionError(CoachError):
    code = RECOGNITION_ERROR


class AnalysisError(CoachError):
    """Base for every failure that ends up in the feedback error slot."""

    code = SERVER_ERROR


class EmptyScriptError(AnalysisError):
    code = EMPTY_SCRIPT


class RequestInFlightError(AnalysisError):
    code = REQUEST_IN_FLIGHT


class NetworkError(AnalysisError):
    code = NETWORK_ERROR


class ServerError(AnalysisError):
    code = SERVER_ERROR

    def __init__(self, message: Optional[str] = None, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(AnalysisError):
    code = MALFORMED_RESPONSE


class ExportError(CoachError):
    code = FILE_SYSTEM_ERROR


class FileSystemError(ExportError):
    code = FILE_SYSTEM_ERROR


class DownloadError(ExportError):
    code = DOWNLOAD_ERROR
