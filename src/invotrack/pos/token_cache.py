"""In-memory cache for short-lived vendor access tokens."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from invotrack.exceptions import AuthError, PosIntegrationError
from invotrack.pos.http_client import VendorResponse

logger = logging.getLogger(__name__)

_TOKEN_SHAPE = re.compile(r"^[A-Za-z0-9._\-]+$")
_TOKEN_FIELD_NAMES = ("AccessToken", "accessToken", "Token", "token")


@dataclass(frozen=True)
class Token:
    """Cached token and its absolute expiry."""

    token: str
    expires: datetime

    @property
    def expires_at(self) -> float:
        return self.expires.timestamp()


def token_from_json_field(body: str) -> Optional[str]:
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None

    for name in _TOKEN_FIELD_NAMES:
        value = payload.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()

    lowered = {str(k).lower(): v for k, v in payload.items()}
    for name in ("accesstoken", "access_token", "token"):
        value = lowered.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def token_from_plain_text(body: str) -> Optional[str]:
    candidate = body.strip().strip('"').strip("'").strip()
    if candidate and _TOKEN_SHAPE.match(candidate):
        return candidate
    return None


TOKEN_EXTRACTORS: tuple[Callable[[str], Optional[str]], ...] = (
    token_from_json_field,
    token_from_plain_text,
)


def parse_token(body: str) -> str:
    """Run the token extractors in order and return the first hit."""
    for extractor in TOKEN_EXTRACTORS:
        token = extractor(body)
        if token:
            return token
    raise AuthError("Token response could not be parsed", body=body)


class TokenCache:
    """Per-account token store with expiry and safety margin.

    Fetches are not serialized: two concurrent misses for one key both hit
    the token endpoint and the later write wins.
    """

    def __init__(self, *, lifetime_sec: int = 600, safety_margin_sec: int = 60) -> None:
        self._lock = threading.Lock()
        self._lifetime_sec = lifetime_sec
        self._safety_margin_sec = safety_margin_sec
        self._entries: dict[str, Token] = {}

    def get(self, key: str) -> Optional[Token]:
        """Return a still-usable token, dropping it if it is inside the margin."""
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now >= entry.expires_at - self._safety_margin_sec:
                self._entries.pop(key, None)
                return None
            return entry

    def set(self, key: str, token: str) -> Token:
        expires = datetime.fromtimestamp(time.time() + self._lifetime_sec, tz=timezone.utc)
        entry = Token(token=token, expires=expires)
        with self._lock:
            self._entries[key] = entry
        return entry

    def evict(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def reset(self) -> None:
        """Clear all tokens (used by tests)."""
        with self._lock:
            self._entries.clear()

    async def get_token(
        self, key: str, fetch: Callable[[], Awaitable[VendorResponse]]
    ) -> str:
        """Return a cached token or fetch, parse and store a new one.

        Any failure evicts the key and surfaces as AuthError.
        """
        cached = self.get(key)
        if cached is not None:
            return cached.token

        try:
            response = await fetch()
            if not response.ok:
                raise AuthError(
                    f"Token request rejected with status {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )
            token = parse_token(response.text)
        except PosIntegrationError as exc:
            self.evict(key)
            logger.error(
                "Token fetch failed: status=%s body=%s", exc.status_code, exc.body
            )
            if isinstance(exc, AuthError):
                raise
            raise AuthError(
                f"Token request failed: {exc.message}",
                status_code=exc.status_code,
                body=exc.body,
            ) from exc

        self.set(key, token)
        logger.debug("Cached new vendor token")
        return token

