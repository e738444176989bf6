# manifest_builder/errors.py
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from manifest_builder.data_models import ProviderAttempt


class BuilderError(Exception):
    """Base class for every error raised by the build pipeline."""


class ConfigurationError(BuilderError):
    """No provider credential is configured, or the master plan cannot be read."""


class ProviderError(BuilderError):
    """Transport, authentication or rate-limit failure from one provider."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ParseError(BuilderError):
    """The extracted payload does not deserialize in the configured format."""


class ValidationError(BuilderError):
    """The parsed payload does not have the shape of a manifest."""


class NoValidManifest(BuilderError):
    """Every configured provider was tried and none produced a valid manifest."""

    def __init__(self, attempts: Optional[List["ProviderAttempt"]] = None):
        self.attempts = list(attempts or [])
        tried = ", ".join(a.provider for a in self.attempts) or "none"
        super().__init__(f"No valid manifest from any configured provider (tried: {tried})")


class WriteError(BuilderError):
    """Filesystem failure while writing one file. Earlier writes stay on disk."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Failed to write '{path}': {message}")
