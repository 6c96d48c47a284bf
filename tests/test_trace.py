"""Tests for the progressive log trace session."""

from typing import Any, Dict, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from jenkins_trace.crumb import Crumb, CrumbPolicy, JsonCrumbUrl
from jenkins_trace.errors import DecodeError, ProtocolError, TransportError
from jenkins_trace.trace import JenkinsTrace, TraceConfig, follow_trace

CRUMB_URL = "http://jenkins.test/crumbIssuer/api/json"
LOG_URL = "http://jenkins.test/job/foo/2/logText/progressiveText"
CRUMB_BODY = b'{"_class": "hudson.security.csrf.DefaultCrumbIssuer", "crumb": "abc", "crumbRequestField": "Jenkins-Crumb"}'


def make_response(
    status_code: int = 200,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    url: str = LOG_URL,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response._content = body
    response.headers = CaseInsensitiveDict(headers or {})
    response.url = url
    response.encoding = "utf-8"
    return response


def crumb_response() -> requests.Response:
    return make_response(body=CRUMB_BODY, url=CRUMB_URL)


class DummySession:
    """Records GET calls and replays queued responses per URL."""

    def __init__(self, responses: Dict[str, List[Any]]) -> None:
        self.responses = {url: list(items) for url, items in responses.items()}
        self.calls: List[tuple] = []
        self.closed = False

    def get(self, url, **kwargs):  # noqa: ANN001
        self.calls.append((url, kwargs))
        item = self.responses[url].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def calls_to(self, url: str) -> List[Dict[str, Any]]:
        return [kwargs for called_url, kwargs in self.calls if called_url == url]

    def close(self) -> None:
        self.closed = True


def make_trace(
    log_responses: List[Any],
    crumb_responses: Optional[List[Any]] = None,
    auth=None,  # noqa: ANN001
    policy: CrumbPolicy = CrumbPolicy.CACHE_ONCE,
    timeout: Optional[float] = None,
) -> tuple[JenkinsTrace, DummySession]:
    session = DummySession(
        {
            CRUMB_URL: crumb_responses if crumb_responses is not None else [crumb_response()],
            LOG_URL: log_responses,
        }
    )
    config = TraceConfig(
        url=LOG_URL,
        crumb_url=JsonCrumbUrl(CRUMB_URL),
        auth=auth,
        crumb_policy=policy,
    )
    return JenkinsTrace(config, session=session, timeout=timeout), session


# ===========================================================================
# next_trace
# ===========================================================================


class TestNextTrace:
    """Tests for JenkinsTrace.next_trace."""

    def test_end_to_end_scenario(self) -> None:
        """Two chunks, then the terminal None."""
        trace, session = make_trace(
            [
                make_response(body=b"hello ", headers={"X-Text-Size": "6", "X-More-Data": "true"}),
                make_response(body=b"world", headers={"X-Text-Size": "11"}),
            ]
        )

        assert trace.next_trace() == b"hello "
        assert trace.offset == 6
        assert trace.ended is False

        assert trace.next_trace() == b"world"
        assert trace.offset == 11
        assert trace.ended is True

        assert trace.next_trace() is None

        log_calls = session.calls_to(LOG_URL)
        assert [call["files"] for call in log_calls] == [
            {"start": (None, "0")},
            {"start": (None, "6")},
        ]
        assert all(call["headers"] == {"Jenkins-Crumb": "abc"} for call in log_calls)
        assert len(session.calls_to(CRUMB_URL)) == 1

    def test_start_offset_is_sent_as_multipart_field(self) -> None:
        """The offset travels as a multipart form field named 'start'."""
        trace, session = make_trace(
            [
                make_response(body=b"a" * 6, headers={"X-Text-Size": "6", "X-More-Data": "true"}),
                make_response(body=b"", headers={"X-Text-Size": "6"}),
            ]
        )
        trace.next_trace()
        trace.next_trace()

        kwargs = session.calls_to(LOG_URL)[1]
        prepared = requests.Request("GET", LOG_URL, files=kwargs["files"], headers=kwargs["headers"]).prepare()

        assert prepared.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="start"\r\n\r\n6\r\n' in prepared.body
        assert prepared.headers["Jenkins-Crumb"] == "abc"

    def test_ended_trace_issues_no_requests(self) -> None:
        """Once ended, every call returns None without touching the network."""
        trace, session = make_trace([make_response(body=b"done", headers={"X-Text-Size": "4"})])

        assert trace.next_trace() == b"done"
        calls_after_end = len(session.calls)

        for _ in range(3):
            assert trace.next_trace() is None
        assert len(session.calls) == calls_after_end

    def test_more_data_value_is_ignored(self) -> None:
        """Only the presence of X-More-Data matters."""
        trace, _ = make_trace([make_response(body=b"x", headers={"X-Text-Size": "1", "X-More-Data": "false"})])

        trace.next_trace()

        assert trace.ended is False

    def test_headers_are_case_insensitive(self) -> None:
        trace, _ = make_trace([make_response(body=b"x", headers={"x-text-size": "1", "x-more-data": "true"})])

        assert trace.next_trace() == b"x"
        assert trace.offset == 1
        assert trace.ended is False

    def test_offset_tracks_latest_text_size(self) -> None:
        """Offset is the absolute size reported by the server, not a sum of chunk lengths."""
        trace, _ = make_trace(
            [
                make_response(body=b"abc", headers={"X-Text-Size": "3", "X-More-Data": "true"}),
                make_response(body=b"", headers={"X-Text-Size": "3", "X-More-Data": "true"}),
                make_response(body=b"<b>d</b>", headers={"X-Text-Size": "4"}),
            ]
        )

        offsets = []
        while trace.next_trace() is not None:
            offsets.append(trace.offset)

        assert offsets == [3, 3, 4]
        assert offsets == sorted(offsets)

    def test_empty_chunk_is_returned_as_bytes(self) -> None:
        """A build with no new output yields b'' rather than None."""
        trace, _ = make_trace([make_response(body=b"", headers={"X-Text-Size": "0", "X-More-Data": "true"})])

        assert trace.next_trace() == b""
        assert trace.ended is False

    def test_largest_text_size_is_accepted(self) -> None:
        size = 2**64 - 1
        trace, _ = make_trace([make_response(body=b"", headers={"X-Text-Size": str(size)})])

        trace.next_trace()

        assert trace.offset == size


# ===========================================================================
# Failure handling
# ===========================================================================


class TestFailures:
    """Errors abort the call and leave session state untouched."""

    def test_missing_text_size(self) -> None:
        trace, _ = make_trace(
            [
                make_response(body=b"hello ", headers={"X-Text-Size": "6", "X-More-Data": "true"}),
                make_response(body=b"world", headers={"X-More-Data": "true"}),
            ]
        )
        trace.next_trace()

        with pytest.raises(ProtocolError) as exc_info:
            trace.next_trace()

        assert exc_info.value.reason == "missing X-Text-Size"
        assert trace.offset == 6
        assert trace.ended is False

    @pytest.mark.parametrize("value", ["abc", "", "-1", "1.5", "0x10", "١٢", str(2**64)])
    def test_invalid_text_size(self, value: str) -> None:
        trace, _ = make_trace([make_response(body=b"x", headers={"X-Text-Size": value})])

        with pytest.raises(ProtocolError) as exc_info:
            trace.next_trace()

        assert exc_info.value.reason == "invalid X-Text-Size"
        assert trace.offset == 0
        assert trace.ended is False

    def test_log_http_error(self) -> None:
        trace, session = make_trace(
            [
                make_response(body=b"hello ", headers={"X-Text-Size": "6", "X-More-Data": "true"}),
                make_response(status_code=500, body=b"boom"),
            ]
        )
        trace.next_trace()

        with pytest.raises(TransportError) as exc_info:
            trace.next_trace()

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, requests.exceptions.HTTPError)
        assert trace.offset == 6
        assert trace.ended is False
        assert trace.crumb == Crumb(field="Jenkins-Crumb", value="abc")

    def test_crumb_http_error(self) -> None:
        trace, session = make_trace(
            [],
            crumb_responses=[make_response(status_code=401, url=CRUMB_URL)],
        )

        with pytest.raises(TransportError) as exc_info:
            trace.next_trace()

        assert exc_info.value.status_code == 401
        assert session.calls_to(LOG_URL) == []
        assert trace.crumb is None
        assert trace.offset == 0
        assert trace.ended is False

    @pytest.mark.parametrize("status", [101, 304])
    def test_status_outside_2xx_range(self, status: int) -> None:
        """1xx and 3xx final responses are transport errors too."""
        trace, _ = make_trace([make_response(status_code=status, body=b"abc", headers={"X-Text-Size": "3"})])

        with pytest.raises(TransportError) as exc_info:
            trace.next_trace()

        assert exc_info.value.status_code == status
        assert trace.offset == 0
        assert trace.ended is False

    def test_crumb_redirect_status(self) -> None:
        trace, session = make_trace([], crumb_responses=[make_response(status_code=302, url=CRUMB_URL)])

        with pytest.raises(TransportError) as exc_info:
            trace.next_trace()

        assert exc_info.value.status_code == 302
        assert trace.crumb is None
        assert session.calls_to(LOG_URL) == []

    def test_crumb_decode_error(self) -> None:
        trace, session = make_trace(
            [],
            crumb_responses=[make_response(body=b"<html>not json</html>", url=CRUMB_URL)],
        )

        with pytest.raises(DecodeError):
            trace.next_trace()

        assert session.calls_to(LOG_URL) == []
        assert trace.crumb is None

    def test_connection_error(self) -> None:
        trace, _ = make_trace([requests.exceptions.ConnectionError("connection refused")])

        with pytest.raises(TransportError) as exc_info:
            trace.next_trace()

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)
        assert trace.offset == 0

    def test_retry_after_failure_resumes_from_same_offset(self) -> None:
        """A failed call can be repeated; the crumb stays cached."""
        trace, session = make_trace(
            [
                make_response(body=b"hello ", headers={"X-Text-Size": "6", "X-More-Data": "true"}),
                make_response(status_code=403),
                make_response(body=b"world", headers={"X-Text-Size": "11"}),
            ]
        )
        trace.next_trace()
        with pytest.raises(TransportError):
            trace.next_trace()

        assert trace.next_trace() == b"world"

        starts = [call["files"]["start"][1] for call in session.calls_to(LOG_URL)]
        assert starts == ["0", "6", "6"]
        assert len(session.calls_to(CRUMB_URL)) == 1


# ===========================================================================
# Crumb policy, auth and transport options
# ===========================================================================


class TestRequestOptions:
    """Tests for crumb policy, basic auth and timeout handling."""

    def test_cache_once_fetches_crumb_once(self) -> None:
        trace, session = make_trace(
            [
                make_response(body=b"a", headers={"X-Text-Size": "1", "X-More-Data": "true"}),
                make_response(body=b"b", headers={"X-Text-Size": "2", "X-More-Data": "true"}),
                make_response(body=b"c", headers={"X-Text-Size": "3"}),
            ]
        )

        while trace.next_trace() is not None:
            pass

        assert len(session.calls_to(CRUMB_URL)) == 1
        assert len(session.calls_to(LOG_URL)) == 3

    def test_always_refresh_fetches_crumb_per_request(self) -> None:
        second_crumb = make_response(
            body=b'{"crumb": "def", "crumbRequestField": "Jenkins-Crumb"}', url=CRUMB_URL
        )
        trace, session = make_trace(
            [
                make_response(body=b"a", headers={"X-Text-Size": "1", "X-More-Data": "true"}),
                make_response(body=b"b", headers={"X-Text-Size": "2"}),
            ],
            crumb_responses=[crumb_response(), second_crumb],
            policy=CrumbPolicy.ALWAYS_REFRESH,
        )

        trace.next_trace()
        trace.next_trace()

        assert len(session.calls_to(CRUMB_URL)) == 2
        headers = [call["headers"] for call in session.calls_to(LOG_URL)]
        assert headers == [{"Jenkins-Crumb": "abc"}, {"Jenkins-Crumb": "def"}]

    def test_basic_auth_is_sent_to_both_endpoints(self) -> None:
        trace, session = make_trace(
            [make_response(body=b"x", headers={"X-Text-Size": "1"})],
            auth=("root", "secret"),
        )

        trace.next_trace()

        assert [kwargs["auth"] for _, kwargs in session.calls] == [("root", "secret"), ("root", "secret")]

    def test_missing_password_is_sent_empty(self) -> None:
        trace, session = make_trace(
            [make_response(body=b"x", headers={"X-Text-Size": "1"})],
            auth=("root", None),
        )

        trace.next_trace()

        assert session.calls_to(LOG_URL)[0]["auth"] == ("root", "")

    def test_no_auth(self) -> None:
        trace, session = make_trace([make_response(body=b"x", headers={"X-Text-Size": "1"})])

        trace.next_trace()

        assert all(kwargs["auth"] is None for _, kwargs in session.calls)

    def test_timeout_is_passed_to_transport(self) -> None:
        trace, session = make_trace(
            [make_response(body=b"x", headers={"X-Text-Size": "1"})],
            timeout=2.5,
        )

        trace.next_trace()

        assert all(kwargs["timeout"] == 2.5 for _, kwargs in session.calls)


# ===========================================================================
# TraceConfig and session lifecycle
# ===========================================================================


class TestTraceConfig:
    """Tests for the immutable trace description."""

    def test_value_semantics(self) -> None:
        first = TraceConfig(LOG_URL, JsonCrumbUrl(CRUMB_URL), ("root", None))
        second = TraceConfig(LOG_URL, JsonCrumbUrl(CRUMB_URL), ("root", None))

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1
        assert first.crumb_policy is CrumbPolicy.CACHE_ONCE

    def test_is_frozen(self) -> None:
        config = TraceConfig(LOG_URL, JsonCrumbUrl(CRUMB_URL))

        with pytest.raises(AttributeError):
            config.url = "http://other.test"  # type: ignore[misc]


class TestSessionLifecycle:
    def test_new_trace_starts_at_zero(self) -> None:
        trace, session = make_trace([])

        assert trace.offset == 0
        assert trace.ended is False
        assert trace.crumb is None
        assert session.calls == []

    def test_injected_session_is_not_closed(self) -> None:
        trace, session = make_trace([])

        with trace:
            pass

        assert session.closed is False

    def test_owned_session_is_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        closed = {"called": False}

        def fake_close(self) -> None:  # noqa: ANN001
            closed["called"] = True

        monkeypatch.setattr(requests.Session, "close", fake_close)

        with JenkinsTrace(TraceConfig(LOG_URL, JsonCrumbUrl(CRUMB_URL))):
            pass

        assert closed["called"] is True


# ===========================================================================
# follow_trace
# ===========================================================================


class TestFollowTrace:
    """Tests for the polling driver loop."""

    def test_yields_chunks_and_sleeps_between_polls(self) -> None:
        trace, _ = make_trace(
            [
                make_response(body=b"a", headers={"X-Text-Size": "1", "X-More-Data": "true"}),
                make_response(body=b"b", headers={"X-Text-Size": "2", "X-More-Data": "true"}),
                make_response(body=b"c", headers={"X-Text-Size": "3"}),
            ]
        )
        sleeps: List[float] = []

        chunks = list(follow_trace(trace, interval=0.5, sleep=sleeps.append))

        assert chunks == [b"a", b"b", b"c"]
        # No sleep after the final chunk
        assert sleeps == [0.5, 0.5]

    def test_zero_interval_never_sleeps(self) -> None:
        trace, _ = make_trace(
            [
                make_response(body=b"a", headers={"X-Text-Size": "1", "X-More-Data": "true"}),
                make_response(body=b"b", headers={"X-Text-Size": "2"}),
            ]
        )
        sleeps: List[float] = []

        assert b"".join(follow_trace(trace, sleep=sleeps.append)) == b"ab"
        assert sleeps == []

    def test_errors_propagate(self) -> None:
        trace, _ = make_trace(
            [
                make_response(body=b"a", headers={"X-Text-Size": "1", "X-More-Data": "true"}),
                make_response(status_code=502),
            ]
        )
        received = []

        with pytest.raises(TransportError):
            for chunk in follow_trace(trace, sleep=lambda _seconds: None):
                received.append(chunk)

        assert received == [b"a"]
        assert trace.offset == 1
