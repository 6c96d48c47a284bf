"""Progressive log reader for a single Jenkins build.

Jenkins serves a running build's console through
``/job/<project>/<build>/logText/progressiveText`` (or ``progressiveHtml``).
Each request carries the byte offset already read; the response holds the
new bytes and two headers:

- ``X-Text-Size``: total size of the log so far, i.e. the next offset
- ``X-More-Data``: present while the build is still producing output

``JenkinsTrace`` keeps the offset and termination flag between calls.
It is meant for single-owner, sequential use: there is no internal
locking, so concurrent ``next_trace`` calls on one instance corrupt its
state. Use one instance per build, or synchronize externally.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import requests

from jenkins_trace import transport
from jenkins_trace.crumb import Crumb, CrumbPolicy, CrumbProvider, CrumbUrl
from jenkins_trace.errors import ProtocolError
from jenkins_trace.transport import Auth

logger = logging.getLogger(__name__)

MAX_TEXT_SIZE = 2**64 - 1


@dataclass(frozen=True)
class TraceConfig:
    """Jenkins build log endpoint description.

    Attributes:
        url: Progressive log endpoint, one of
            ``http://<server>/job/<project>/<build>/logText/progressiveText`` or
            ``http://<server>/job/<project>/<build>/logText/progressiveHtml``
        crumb_url: Crumb issuer endpoint
        auth: HTTP basic auth as (username, password or None)
        crumb_policy: Whether the crumb is fetched once or before every request
    """
    url: str
    crumb_url: CrumbUrl
    auth: Optional[Auth] = None
    crumb_policy: CrumbPolicy = CrumbPolicy.CACHE_ONCE


def _parse_text_size(value: Optional[str]) -> int:
    if value is None:
        raise ProtocolError("missing X-Text-Size")
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise ProtocolError("invalid X-Text-Size")
    size = int(value)
    if size > MAX_TEXT_SIZE:
        raise ProtocolError("invalid X-Text-Size")
    return size


class JenkinsTrace:
    """Reads the console log of a given Jenkins build chunk by chunk."""

    MORE_DATA_FIELD = "X-More-Data"
    TEXT_SIZE_FIELD = "X-Text-Size"

    def __init__(
        self,
        config: TraceConfig,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        """
        Create a trace positioned at the start of the log.

        Args:
            config: Build log endpoint description
            session: HTTP session to use; a new one is created if None
            timeout: Per-request transport timeout in seconds (None = no timeout)
        """
        self.config = config
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

        # Bytes of log already delivered
        self.offset = 0
        self.ended = False

        self.crumbs = CrumbProvider(
            config.crumb_url,
            self.session,
            auth=config.auth,
            policy=config.crumb_policy,
            timeout=timeout,
        )

    @property
    def crumb(self) -> Optional[Crumb]:
        """Currently cached crumb, if any."""
        return self.crumbs.crumb

    def next_trace(self) -> Optional[bytes]:
        """Fetch the next chunk of the log.

        Returns:
            The log bytes produced since the previous call, or None once the
            server has reported that the build is over. After the first None
            every further call returns None without contacting the server.

        Raises:
            TransportError: Network failure or non-2xx status
            ProtocolError: Missing or malformed X-Text-Size header
            DecodeError: Malformed crumb issuer response

        On failure ``offset`` and ``ended`` are left unchanged, so the same
        call may be retried.
        """
        if self.ended:
            return None

        crumb = self.crumbs.get_crumb()

        logger.debug("Requesting %s from offset %d", self.config.url, self.offset)
        response = transport.get(
            self.session,
            self.config.url,
            auth=self.config.auth,
            timeout=self.timeout,
            headers={crumb.field: crumb.value},
            files={"start": (None, str(self.offset))},
        )

        more_data = self.MORE_DATA_FIELD in response.headers
        text_size = _parse_text_size(response.headers.get(self.TEXT_SIZE_FIELD))
        body = response.content

        self.offset = text_size
        self.ended = not more_data
        logger.debug(
            "Received %d bytes, offset now %d%s",
            len(body),
            self.offset,
            " (end of log)" if self.ended else "",
        )
        return body

    def close(self) -> None:
        """Close the HTTP session if this trace created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "JenkinsTrace":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def follow_trace(
    trace: JenkinsTrace,
    interval: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[bytes]:
    """Yield log chunks until the build is over (like tail -f).

    Args:
        trace: Trace to drive
        interval: Seconds to wait between polls while more data is expected
        sleep: Sleep function (injectable for tests)

    Yields:
        Each non-terminal chunk returned by ``next_trace``; empty chunks
        are yielded too

    Errors from ``next_trace`` propagate unchanged and stop the iteration.
    """
    while True:
        chunk = trace.next_trace()
        if chunk is None:
            return
        yield chunk
        if not trace.ended and interval > 0:
            sleep(interval)
