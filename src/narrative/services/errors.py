from __future__ import annotations

from typing import Optional


class GatewayError(RuntimeError):
    """A call to the generative model provider failed."""

    def __init__(
        self,
        message: str,
        *,
        http_status: Optional[int] = None,
        provider_status: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.provider_status = provider_status


class GatewayConfigError(GatewayError):
    """Credentials for the provider are missing."""


class StructuredOutputError(GatewayError):
    """The provider returned a JSON body that does not match the expected shape."""


class FilesTooLargeError(GatewayError):
    """The combined files exceed what the selected model accepts in one request."""

    guidance = "Files too large for this model. Retry with fewer files or a larger-context model."
