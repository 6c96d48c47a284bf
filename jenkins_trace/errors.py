"""Exceptions raised while tracing a Jenkins build log."""

from typing import Optional


class JenkinsTraceError(Exception):
    """Jenkins trace base exception."""
    pass


class TransportError(JenkinsTraceError):
    """Network failure or non-2xx HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(JenkinsTraceError):
    """The Jenkins server sent a missing or malformed protocol header."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DecodeError(JenkinsTraceError):
    """The crumb issuer response could not be decoded."""
    pass
