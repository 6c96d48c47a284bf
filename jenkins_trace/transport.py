"""Thin HTTP layer shared by the crumb provider and the trace session.

Every request is a single attempt: failures are translated into
``TransportError`` and raised to the caller, never retried here.
"""

import logging
from typing import Optional, Tuple

import requests

from jenkins_trace.errors import TransportError

logger = logging.getLogger(__name__)

# Basic auth username & optional password
Auth = Tuple[str, Optional[str]]

ERROR_BODY_PREVIEW_LIMIT = 500


def basic_auth(auth: Optional[Auth]) -> Optional[Tuple[str, str]]:
    """Convert an optional (user, password) pair into a requests auth tuple.

    A missing password is sent as an empty one (``user:``).
    """
    if auth is None:
        return None
    user, password = auth
    return user, password or ""


def _body_preview(response: Optional[requests.Response]) -> str:
    if response is None:
        return "<no response>"
    try:
        text = response.text or ""
    except requests.exceptions.RequestException:
        return "<unreadable>"
    if len(text) > ERROR_BODY_PREVIEW_LIMIT:
        return text[:ERROR_BODY_PREVIEW_LIMIT] + "..."
    return text.strip() or "<empty>"


def get(
    session: requests.Session,
    url: str,
    auth: Optional[Auth] = None,
    timeout: Optional[float] = None,
    **kwargs,
) -> requests.Response:
    """Send one GET request and fail on anything but a 2xx response.

    The body is read before returning so that a broken transfer surfaces
    here as ``TransportError`` rather than later from ``response.content``.

    Raises:
        TransportError: On connection failures, timeouts or non-2xx status
    """
    response: Optional[requests.Response] = None
    try:
        response = session.get(url, auth=basic_auth(auth), timeout=timeout, **kwargs)
        logger.debug("GET %s -> %s", url, response.status_code)
        response.raise_for_status()
        if not 200 <= response.status_code < 300:
            # raise_for_status lets 1xx and 3xx through
            raise TransportError(
                f"HTTP {response.status_code} while requesting {url}", status_code=response.status_code
            )
        _ = response.content
        return response
    except requests.exceptions.HTTPError as http_err:
        failed = http_err.response if http_err.response is not None else response
        status = failed.status_code if failed is not None else None
        logger.debug("Jenkins returned HTTP %s for %s. Body: %s", status, url, _body_preview(failed))
        raise TransportError(f"HTTP {status} while requesting {url}", status_code=status) from http_err
    except requests.exceptions.RequestException as e:
        raise TransportError(f"Request to {url} failed: {e}") from e
