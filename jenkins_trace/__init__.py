"""Follow the console log of a running Jenkins build."""

from jenkins_trace.crumb import Crumb, CrumbPolicy, CrumbProvider, CrumbUrl, JsonCrumbUrl
from jenkins_trace.errors import DecodeError, JenkinsTraceError, ProtocolError, TransportError
from jenkins_trace.trace import JenkinsTrace, TraceConfig, follow_trace

__version__ = "0.1.0"

__all__ = [
    "Crumb",
    "CrumbPolicy",
    "CrumbProvider",
    "CrumbUrl",
    "JsonCrumbUrl",
    "DecodeError",
    "JenkinsTraceError",
    "ProtocolError",
    "TransportError",
    "JenkinsTrace",
    "TraceConfig",
    "follow_trace",
]
