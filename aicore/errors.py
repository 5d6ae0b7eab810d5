"""
Exception hierarchy for aicore.

Configuration problems (missing model, unknown adapter, malformed provider)
are raised before any network call is made. Vendor SDK errors are never
wrapped here; they travel through the middleware chain unchanged.
"""
from typing import Optional


class AiCoreError(Exception):
    """Base class for every error raised by aicore itself."""


class ConfigurationError(AiCoreError, ValueError):
    """A provider, model or adapter is configured incorrectly."""


class ProviderNotRegisteredError(ConfigurationError):
    """No universal adapter plugin is registered under the given name."""

    def __init__(self, provider_name: str):
        super().__init__(f'Provider "{provider_name}" is not registered.')
        self.provider_name = provider_name


class ClientResolutionError(ConfigurationError):
    """A dispatcher client could not pick a concrete client for a model."""

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id


class RequestAbortedError(AiCoreError):
    """
    The caller aborted the request.

    Raised out of ``AiProvider.completions`` instead of a generic failure so
    callers can tell a user-initiated stop apart from a transport error.
    """

    def __init__(self, reason: Optional[str] = None, request_id: Optional[str] = None):
        super().__init__(reason or "Request was aborted")
        self.reason = reason
        self.request_id = request_id
