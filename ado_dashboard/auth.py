"""Static credential handling: an explicit PAT or one taken from the environment."""

import logging
import os
import time
from abc import ABC, abstractmethod
from base64 import b64encode
from dataclasses import dataclass

from .config import AuthConfig
from .errors import AdoAuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class AuthCredential:
    """A Personal Access Token and where it came from."""

    token: str
    method: str  # 'pat' or 'env_pat'

    def to_header(self) -> dict[str, str]:
        """Convert credential to a Basic Authorization header."""
        encoded_token = b64encode(f":{self.token}".encode("ascii")).decode("ascii")
        return {"Authorization": f"Basic {encoded_token}"}


class AuthProvider(ABC):
    """Abstract base class for credential providers."""

    @abstractmethod
    def get_credential(self) -> AuthCredential | None:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class PatAuthProvider(AuthProvider):
    """Personal Access Token passed in explicitly."""

    def __init__(self, pat: str):
        self.pat = pat

    def get_credential(self) -> AuthCredential | None:
        if not self.pat:
            return None
        return AuthCredential(token=self.pat, method="pat")

    def get_name(self) -> str:
        return "PAT"


class EnvironmentPatAuthProvider(AuthProvider):
    """Personal Access Token read from an environment variable at call time."""

    def __init__(self, env_var: str = "AZURE_DEVOPS_EXT_PAT"):
        self.env_var = env_var

    def get_credential(self) -> AuthCredential | None:
        pat = os.environ.get(self.env_var)
        if not pat:
            return None
        return AuthCredential(token=pat, method="env_pat")

    def get_name(self) -> str:
        return f"Environment ({self.env_var})"


class AuthManager:
    """
    Chains credential providers and caches the first credential that works.

    Providers are tried in the order they were added.
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self.providers: list[AuthProvider] = []
        self.cached_credential: AuthCredential | None = None
        self.cache_time: float = 0

    def add_provider(self, provider: AuthProvider):
        """Add an authentication provider to the chain."""
        self.providers.append(provider)
        logger.debug(f"Added auth provider: {provider.get_name()}")

    def setup_default_providers(self, explicit_pat: str | None = None):
        """Explicit PAT first, then the configured environment variable."""
        self.providers.clear()

        if explicit_pat:
            self.add_provider(PatAuthProvider(explicit_pat))

        self.add_provider(EnvironmentPatAuthProvider(self.config.pat_env_var))

    def get_credential(self) -> AuthCredential:
        """
        Get authentication credential using credential chaining.

        Returns:
            AuthCredential: Valid authentication credential

        Raises:
            AdoAuthenticationError: If no provider yields a credential
        """
        if self._is_cached_credential_valid():
            return self.cached_credential

        for provider in self.providers:
            credential = provider.get_credential()
            if credential:
                logger.info(f"Successfully authenticated using {provider.get_name()}")
                self._cache_credential(credential)
                return credential
            logger.debug(f"No credential available from {provider.get_name()}")

        provider_names = [p.get_name() for p in self.providers]
        raise AdoAuthenticationError(
            f"No authentication method succeeded. Tried: {', '.join(provider_names)}",
            context={"providers_tried": provider_names},
        )

    def _is_cached_credential_valid(self) -> bool:
        if not self.cached_credential:
            return False
        return time.time() - self.cache_time <= self.config.cache_ttl_seconds

    def _cache_credential(self, credential: AuthCredential):
        self.cached_credential = credential
        self.cache_time = time.time()

    def invalidate_cache(self):
        """Invalidate the cached credential."""
        self.cached_credential = None
        self.cache_time = 0
        logger.debug("Authentication cache invalidated")

    def get_auth_headers(self) -> dict[str, str]:
        """
        Get authentication headers for HTTP requests.

        Returns:
            dict[str, str]: Headers dictionary with authentication
        """
        headers = self.get_credential().to_header()
        headers["Content-Type"] = "application/json"
        return headers

    def get_auth_method(self) -> str:
        """Name of the method that produced the current credential, or ``"none"``."""
        if self.cached_credential:
            return self.cached_credential.method

        try:
            return self.get_credential().method
        except AdoAuthenticationError:
            return "none"
