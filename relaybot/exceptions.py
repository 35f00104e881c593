"""Exceptions raised by relaybot services."""


class RelayError(Exception):
    """Base exception for relaybot errors"""
    pass


class ConfigurationError(RelayError):
    """A feature is missing the configuration it needs"""
    pass


class NoCredentialsConfigured(ConfigurationError):
    """The search credential list is empty"""
    pass


class ProviderError(RelayError):
    """An external provider (model, search, TTS) call failed"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(RelayError):
    """A stored record could not be read or written"""
    pass
