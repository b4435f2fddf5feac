"""
Error taxonomy for the scan engine.

InputError          malformed or unsafe URL, rejected before any network I/O
FetchError          header fetch failed (DNS, refused, timeout, 5xx, redirects)
TlsUnavailableError the target does not answer HTTPS at all
TlsProbeError       HTTPS answered but the handshake / certificate read failed

The engine raises these; the API layer decides how they look on the wire.
"""
from typing import Optional


class ScanError(Exception):
    """Base class for every error the engine surfaces to its caller."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url

    def __str__(self) -> str:
        return self.message


class InputError(ScanError, ValueError):
    pass


class FetchError(ScanError):
    pass


class TlsError(ScanError):
    pass


class TlsUnavailableError(TlsError):
    pass


class TlsProbeError(TlsError):
    pass
