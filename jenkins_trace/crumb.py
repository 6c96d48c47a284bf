"""CSRF crumb acquisition for Jenkins.

Jenkins protects its endpoints with a CSRF token (a "crumb") that must be
sent as a custom header. The crumb issuer tells us both the header name and
its value.

The issuer format is described by a ``CrumbUrl`` variant. Only the JSON
issuer (``http://<server>/crumbIssuer/api/json``) exists today; new formats
subclass ``CrumbUrl`` and implement ``parse`` without touching the trace
session.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional

import requests

from jenkins_trace import transport
from jenkins_trace.errors import DecodeError
from jenkins_trace.transport import Auth

logger = logging.getLogger(__name__)


class Crumb(NamedTuple):
    """CSRF header name and value."""
    field: str
    value: str


class CrumbPolicy(Enum):
    """When to ask the crumb issuer for a crumb."""
    CACHE_ONCE = "cache-once"
    ALWAYS_REFRESH = "always-refresh"


@dataclass(frozen=True)
class CrumbUrl(ABC):
    """Crumb issuer endpoint together with its response format."""

    url: str

    @abstractmethod
    def parse(self, body: bytes) -> Crumb:
        """Decode an issuer response body into a crumb.

        Raises:
            DecodeError: If the body does not hold a crumb
        """
        pass


@dataclass(frozen=True)
class JsonCrumbUrl(CrumbUrl):
    """``/crumbIssuer/api/json`` endpoint."""

    def parse(self, body: bytes) -> Crumb:
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from crumb issuer {self.url}: {e}") from e

        if not isinstance(payload, dict):
            raise DecodeError(f"Crumb issuer {self.url} did not return a JSON object")

        crumb = payload.get("crumb")
        field = payload.get("crumbRequestField")
        if not isinstance(crumb, str) or not isinstance(field, str):
            raise DecodeError(
                f"Crumb issuer {self.url} response must contain string fields "
                "'crumb' and 'crumbRequestField'"
            )
        return Crumb(field=field, value=crumb)


class CrumbProvider:
    """Fetches the crumb lazily and caches it according to ``policy``.

    Under ``CACHE_ONCE`` the issuer is contacted at most once for the
    lifetime of the provider. Under ``ALWAYS_REFRESH`` every call fetches a
    new crumb; the latest one is still kept in ``crumb``.

    A failed fetch leaves the cache as it was.
    """

    def __init__(
        self,
        crumb_url: CrumbUrl,
        session: requests.Session,
        auth: Optional[Auth] = None,
        policy: CrumbPolicy = CrumbPolicy.CACHE_ONCE,
        timeout: Optional[float] = None,
    ):
        self.crumb_url = crumb_url
        self.session = session
        self.auth = auth
        self.policy = policy
        self.timeout = timeout
        self.crumb: Optional[Crumb] = None

    def get_crumb(self) -> Crumb:
        """Return a crumb, contacting the issuer only when needed.

        Raises:
            TransportError: If the issuer request fails or is not 2xx
            DecodeError: If the issuer response cannot be decoded
        """
        if self.crumb is not None and self.policy is CrumbPolicy.CACHE_ONCE:
            logger.debug("Reusing cached crumb for header %s", self.crumb.field)
            return self.crumb

        response = transport.get(
            self.session, self.crumb_url.url, auth=self.auth, timeout=self.timeout
        )
        crumb = self.crumb_url.parse(response.content)
        logger.debug("Fetched crumb for header %s from %s", crumb.field, self.crumb_url.url)

        self.crumb = crumb
        return crumb

    def invalidate(self) -> None:
        """Forget the cached crumb so the next call fetches a new one."""
        self.crumb = None
