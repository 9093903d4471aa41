"""Error taxonomy for the AI layer."""

from __future__ import annotations


class FinnError(Exception):
    """Base class for all finn-bot errors."""


class ConfigurationError(FinnError):
    """Missing credential or invalid setup. Raised before any network call."""


class ModelNotFoundError(ConfigurationError):
    def __init__(self, alias: str):
        super().__init__(f'Model "{alias}" not found')
        self.alias = alias


class ModelDisabledError(ConfigurationError):
    def __init__(self, alias: str, display_name: str):
        super().__init__(f'Model "{display_name}" is disabled')
        self.alias = alias
        self.display_name = display_name


class ProviderError(FinnError):
    """Transport or protocol failure talking to an inference provider."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider
        self.status_code = status_code
