"""
Pytest configuration and fixtures.

Provides a scriptable stand-in for requests.Session so the pipeline can be
exercised end to end without network access.

Integration tests fail on any WARNING or ERROR logged by the code under test;
unit tests may log freely.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any, override

import pytest

_MISSING = object()


class FakeResponse:
    """Minimal requests.Response look-alike."""

    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = _MISSING,
        text: str | None = None,
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self.reason = reason or ("OK" if 200 <= status_code < 300 else "Error")
        if text is None:
            text = "" if json_data is _MISSING else json.dumps(json_data)
        self.text = text
        self.content = text.encode("utf-8")

    def json(self) -> Any:
        # json.JSONDecodeError is a ValueError, like requests' own decode error
        return json.loads(self.text)


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: dict[str, Any]

    @property
    def headers(self) -> dict[str, str]:
        return self.kwargs.get("headers") or {}

    @property
    def body(self) -> Any:
        return self.kwargs.get("json")


@dataclass
class FakeSession:
    """Routes (method, url) to scripted responses and records every call.

    A route value may be a FakeResponse, an exception instance to raise, or a
    callable taking the RecordedCall. Unrouted requests get a 404.
    """

    routes: dict[tuple[str, str], Any] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    closed: bool = False

    def route(self, method: str, url: str, response: Any) -> None:
        self.routes[(method.upper(), url)] = response

    def _dispatch(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        call = RecordedCall(method=method, url=url, kwargs=kwargs)
        self.calls.append(call)
        handler = self.routes.get((method, url), FakeResponse(404, text="not found"))
        if isinstance(handler, BaseException):
            raise handler
        if isinstance(handler, Callable):
            return handler(call)
        return handler

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._dispatch("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._dispatch("POST", url, **kwargs)

    def close(self) -> None:
        self.closed = True

    def calls_to(self, method: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.method == method]


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


# Warning records captured per integration test node id
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Collects WARNING and above records emitted during one integration test."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__(level=logging.WARNING)
        self.test_nodeid = test_nodeid

    @override
    def emit(self, record: logging.LogRecord) -> None:
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(request: pytest.FixtureRequest) -> Generator[None]:
    """Capture logger warnings during integration tests so the report hook can fail them.

    A successful end-to-end migration is expected to log nothing above INFO.
    Failure scenarios that log errors on purpose belong in unit-marked classes.
    """
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]) -> Generator[None]:  # type: ignore[misc]
    """Turn a passed integration test into a failure if it logged warnings."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        warning_records = _integration_test_warnings.get(item.nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(item.nodeid, None)
