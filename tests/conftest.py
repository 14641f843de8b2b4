from __future__ import annotations

from typing import Any, Callable

import pytest


class FakeUpstream:
    """Stands in for UpstreamClient; answers by (method, path) and records every call.

    A response may be a value, an exception to raise, or a callable taking
    ``(body, params)`` that returns either.
    """

    def __init__(self, responses: dict[tuple[str, str], Any] | None = None) -> None:
        self.responses: dict[tuple[str, str], Any] = dict(responses or {})
        self.calls: list[tuple[str, str, Any, Any]] = []

    def on(self, method: str, path: str, response: Any | Callable[[Any, Any], Any]) -> None:
        self.responses[(method, path)] = response

    def calls_to(self, method: str, path: str | None = None) -> list[tuple[str, str, Any, Any]]:
        return [call for call in self.calls if call[0] == method and (path is None or call[1] == path)]

    def _handle(self, method: str, path: str, body: Any = None, params: Any = None) -> Any:
        self.calls.append((method, path, body, params))
        result = self.responses.get((method, path), {})
        if callable(result):
            result = result(body, params)
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, path: str, params: Any = None) -> Any:
        return self._handle("GET", path, params=params)

    def post(self, path: str, body: Any = None, params: Any = None) -> Any:
        return self._handle("POST", path, body=body, params=params)

    def patch(self, path: str, body: Any = None) -> Any:
        return self._handle("PATCH", path, body=body)

    def delete(self, path: str, params: Any = None) -> Any:
        return self._handle("DELETE", path, params=params)


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()
