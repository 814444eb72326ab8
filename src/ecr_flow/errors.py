"""Error taxonomy for a single ecr-flow run.

Configuration and auth-mode errors abort the run before any network call.
Token and timeout errors abort the step that raised them. Per-encounter and
per-reference failures are caught by the resolver and the flows and never
reach the top level.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class EcrFlowError(Exception):
    """Base class for every error raised by ecr_flow."""


class ConfigurationError(EcrFlowError):
    """Required settings are missing or invalid."""

    def __init__(self, message: str | None = None, missing: Iterable[str] = ()) -> None:
        self.missing: tuple[str, ...] = tuple(missing)
        if message is None:
            message = f"Missing configuration: {', '.join(self.missing)}"
        super().__init__(message)


class UnsupportedModeError(EcrFlowError):
    """AUTH_MODE names no known credential strategy."""

    def __init__(self, mode: str) -> None:
        self.mode = mode
        super().__init__(f"Unsupported AUTH_MODE: {mode}")


class TokenResponseError(EcrFlowError):
    """A token endpoint answered without a usable access_token."""

    def __init__(self, url: str, body: object) -> None:
        self.url = url
        self.body = body
        super().__init__(f"Token endpoint {url} did not return access_token. Body: {body}")


class FileReadError(EcrFlowError):
    """The private key file is missing or unreadable."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot read private key file {self.path}{detail}")


class SigningError(EcrFlowError):
    """The key material could not be loaded or used to sign a client assertion."""


class RequestTimeoutError(EcrFlowError, TimeoutError):
    """An HTTP call did not complete within its timeout."""

    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout:g}s")
