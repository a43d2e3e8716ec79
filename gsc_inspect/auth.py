from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from .constants import ADC_SCOPE, SCOPE
from .errors import AuthError

logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Source of bearer tokens for the inspection API.

    Implementations may cache and refresh; get_access_token() is called
    before every request attempt and may raise."""

    @abstractmethod
    def get_access_token(self) -> str:
        """Return a currently valid access token."""


class StaticTokenProvider(CredentialProvider):
    """Always returns the same token (e.g. one passed via an environment variable)."""

    def __init__(self, token: str) -> None:
        if not token:
            raise AuthError("empty access token")
        self._token = token

    def get_access_token(self) -> str:
        return self._token


class GoogleCredentialProvider(CredentialProvider):
    """Wraps a google.auth credentials object, refreshing it when it is not valid."""

    def __init__(self, credentials: Any, request_factory: Callable[[], Any] = Request) -> None:
        self._credentials = credentials
        self._request_factory = request_factory
        self._lock = threading.Lock()

    def get_access_token(self) -> str:
        with self._lock:
            if not self._credentials.valid:
                self._credentials.refresh(self._request_factory())
            token = self._credentials.token
        if not token:
            raise AuthError("credential refresh returned no access token")
        return token

    @classmethod
    def from_service_account(cls, key_file: str) -> "GoogleCredentialProvider":
        creds = service_account.Credentials.from_service_account_file(key_file, scopes=[SCOPE])
        return cls(creds)

    @classmethod
    def from_application_default(cls) -> "GoogleCredentialProvider":
        creds, _project = google.auth.default(scopes=[ADC_SCOPE])
        return cls(creds)

    @classmethod
    def from_authorized_user(cls, token_file: str) -> "GoogleCredentialProvider":
        creds = user_credentials.Credentials.from_authorized_user_file(token_file, scopes=[SCOPE])
        return cls(creds)


def authenticate(
    service_account_file: Optional[str] = None,
    authorized_user_file: Optional[str] = None,
) -> tuple[CredentialProvider, str]:
    """Resolve a credential provider: service account, then ADC, then a cached authorized-user file.

    Each candidate is verified by fetching one token. Returns the provider and
    a short label naming the method that worked.
    """
    if service_account_file:
        if not os.path.isfile(service_account_file):
            raise AuthError(
                f"Service-account key not found at '{service_account_file}'",
                context={"path": service_account_file},
            )
        try:
            provider = GoogleCredentialProvider.from_service_account(service_account_file)
            provider.get_access_token()
        except (GoogleAuthError, ValueError, OSError) as exc:
            raise AuthError(f"Service-account authentication failed: {exc}") from exc
        return provider, "service account"

    try:
        provider = GoogleCredentialProvider.from_application_default()
        provider.get_access_token()
        return provider, "application default credentials"
    except (GoogleAuthError, AuthError, ValueError, OSError) as exc:
        logger.info("ADC not available (%s), falling back to authorized-user file", exc)

    if authorized_user_file and os.path.isfile(authorized_user_file):
        try:
            provider = GoogleCredentialProvider.from_authorized_user(authorized_user_file)
            provider.get_access_token()
        except (GoogleAuthError, ValueError, OSError) as exc:
            raise AuthError(f"Authorized-user authentication failed: {exc}") from exc
        return provider, "authorized user"

    raise AuthError(
        "No credentials available. Use --service-account <key.json>, set up ADC with "
        "'gcloud auth application-default login', or pass --authorized-user <token.json>."
    )
