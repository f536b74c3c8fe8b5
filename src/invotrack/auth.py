"""Bearer authentication: Supabase JWTs or configured API keys."""

import logging
from threading import Lock
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from invotrack.config import InvoTrackConfig
from invotrack.dependencies import get_app_config, get_supabase_client_provider

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

API_KEY_USER_ID = "api-key-user"


class SupabaseClientProvider:
    """App-scoped lazy Supabase client bound to startup config."""

    def __init__(self, config: InvoTrackConfig) -> None:
        self._config = config
        self._client: Optional[Client] = None
        self._lock = Lock()

    @property
    def configured(self) -> bool:
        return bool(self._config.supabase_url and self._config.supabase_service_role_key)

    def get_client(self) -> Client:
        if not self.configured:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Authentication service is not configured",
            )

        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._client = create_client(
                    self._config.supabase_url,
                    self._config.supabase_service_role_key,
                )
        return self._client


def fetch_supabase_user(token: str, client: Client) -> dict[str, Any]:
    """Return the user payload for a verified Supabase JWT."""
    response = client.auth.get_user(token)
    user = response.user if response is not None else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    if hasattr(user, "model_dump"):
        return user.model_dump(mode="json")
    return {"id": getattr(user, "id", None)}


async def verify_bearer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: InvoTrackConfig = Depends(get_app_config),
    provider: SupabaseClientProvider = Depends(get_supabase_client_provider),
) -> dict[str, Any]:
    """Verify the Bearer token and return the authenticated user payload.

    A configured API key short-circuits Supabase; anything else must be a JWT
    that Supabase accepts.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    token = credentials.credentials

    api_keys = config.get_api_keys()
    if config.allow_api_key_auth and api_keys and token in api_keys:
        return {"id": API_KEY_USER_ID, "auth": "api_key"}

    client = provider.get_client()
    try:
        return fetch_supabase_user(token, client)
    except HTTPException:
        raise
    except Exception as e:
        logger.warning("Supabase token verification failed: %s", type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def current_user_id(user: dict[str, Any] = Depends(verify_bearer)) -> str:
    """Resolve the authenticated user's id."""
    user_id = user.get("id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authenticated user has no id",
        )
    return str(user_id)
