"""Scripted VendorHttpClient for adapter, manager and API tests."""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from invotrack.pos.http_client import VendorResponse


def json_response(body: Any, status_code: int = 200) -> VendorResponse:
    return VendorResponse(status_code=status_code, text=json.dumps(body))


def text_response(text: str, status_code: int = 200) -> VendorResponse:
    return VendorResponse(status_code=status_code, text=text)


@dataclass
class RecordedCall:
    method: str
    url: str
    params: dict[str, Any]
    headers: dict[str, str]
    json_body: Any


Responder = Union[VendorResponse, Callable[[RecordedCall], VendorResponse]]


@dataclass
class _Route:
    method: str
    suffix: str
    responses: list[Responder] = field(default_factory=list)


class FakeVendorHttp:
    """Answers requests by method + URL suffix; the last response repeats."""

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self._routes: list[_Route] = []

    def add(self, method: str, suffix: str, *responses: Responder) -> "FakeVendorHttp":
        self._routes.append(_Route(method=method, suffix=suffix, responses=list(responses)))
        return self

    def calls_to(self, method: str, suffix: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.method == method and c.url.endswith(suffix)]

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Any = None,
    ) -> VendorResponse:
        call = RecordedCall(method, url, dict(params or {}), dict(headers or {}), json_body)
        self.calls.append(call)
        for route in self._routes:
            if route.method == method and url.endswith(route.suffix):
                responder = route.responses[0]
                if len(route.responses) > 1:
                    route.responses.pop(0)
                return responder(call) if callable(responder) else responder
        raise AssertionError(f"Unexpected vendor call: {method} {url}")
