"""Daemon error taxonomy.

Each error carries the HTTP status it maps to; main.py registers a single
handler that renders them as {"error": message}.
"""


class DaemonError(Exception):
    """Base class for errors surfaced to API clients"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DaemonError):
    """Requested file or task artifact does not exist"""

    status_code = 404


class MalformedRequestError(DaemonError):
    """Request body failed to decode or validate"""

    status_code = 400


class InvalidTaskIdError(MalformedRequestError):
    """Task id is not a single safe path segment"""


class PayloadTooLargeError(DaemonError):
    """Request body exceeded the configured bound"""

    status_code = 413


class StartupError(Exception):
    """Daemon could not complete startup (fatal)"""
