"""
TLS probes.

Certificate validation is switched off on purpose: the scanner has to complete
a handshake with expired or self-signed certificates so it can report on
them. Every probe opens its own connection, bounds it with its own timeout
and closes it before returning, error paths included. Connections are
asyncio streams, so cancelling the surrounding task aborts them.
"""
import asyncio
import logging
import ssl
from contextlib import asynccontextmanager
from typing import List, NamedTuple, Optional

import httpx

from secprobe.core.config import settings
from secprobe.core.errors import TlsProbeError

logger = logging.getLogger(__name__)

# Legacy versions the optional probe may try. SSLv2/SSLv3 cannot be
# negotiated by the ssl module at all.
LEGACY_TLS_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
}


class HandshakeInfo(NamedTuple):
    certificate_der: Optional[bytes]
    cipher_name: Optional[str]
    protocol_version: Optional[str]


def insecure_context(
    minimum: Optional[ssl.TLSVersion] = None,
    maximum: Optional[ssl.TLSVersion] = None,
) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    if minimum is not None:
        context.minimum_version = minimum
    if maximum is not None:
        context.maximum_version = maximum
    return context


@asynccontextmanager
async def tls_connection(host: str, port: int, context: ssl.SSLContext, timeout: float):
    """Open a TLS stream (SNI = host) and yield its SSLObject."""
    _, writer = await asyncio.wait_for(
        asyncio.open_connection(
            host, port, ssl=context, server_hostname=host, ssl_handshake_timeout=timeout
        ),
        timeout=timeout,
    )
    try:
        yield writer.get_extra_info("ssl_object")
    finally:
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=timeout)
        except (OSError, ssl.SSLError, asyncio.TimeoutError) as e:
            logger.debug("TLS close to %s:%s was not clean: %r", host, port, e)


def https_url(host: str, port: int = 443) -> str:
    netloc = f"[{host}]" if ":" in host else host
    if port != 443:
        netloc = f"{netloc}:{port}"
    return f"https://{netloc}/"


async def check_https_availability(host: str, port: int = 443) -> bool:
    """HEAD over HTTPS accepting any certificate; available iff status < 500."""
    url = https_url(host, port)
    try:
        async with httpx.AsyncClient(
            verify=False,
            timeout=settings.tls_timeout,
            headers={"User-Agent": settings.user_agent},
        ) as client:
            # httpx timeouts are per read, the whole exchange gets one budget
            r = await asyncio.wait_for(client.head(url), timeout=settings.tls_timeout)
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        logger.info("HTTPS not available for %s:%s: %r", host, port, e)
        return False
    return r.status_code < 500


async def get_handshake_info(host: str, port: int = 443) -> HandshakeInfo:
    """One full handshake: peer certificate (DER) plus the negotiated cipher."""
    try:
        async with tls_connection(host, port, insecure_context(), settings.tls_timeout) as ssl_object:
            der = ssl_object.getpeercert(binary_form=True)
            cipher = ssl_object.cipher()
            version = ssl_object.version()
    except asyncio.TimeoutError as e:
        raise TlsProbeError(f"Timed out reading certificate from {host}:{port}", url=host) from e
    except (OSError, ssl.SSLError) as e:
        raise TlsProbeError(f"TLS handshake with {host}:{port} failed: {e}", url=host) from e

    return HandshakeInfo(
        certificate_der=der or None,
        cipher_name=cipher[0] if cipher else None,
        protocol_version=version,
    )


async def _handshake_succeeds(host: str, port: int, context: ssl.SSLContext) -> bool:
    try:
        async with tls_connection(host, port, context, settings.tls_test_timeout):
            return True
    except (OSError, ssl.SSLError, asyncio.TimeoutError):
        return False


async def test_modern_tls(host: str, port: int = 443) -> bool:
    """Can we complete a TLS 1.2+ handshake?"""
    return await _handshake_succeeds(host, port, insecure_context(minimum=ssl.TLSVersion.TLSv1_2))


async def probe_legacy_protocols(host: str, port: int = 443) -> List[str]:
    """
    Try each legacy TLS version pinned as both min and max. Most local OpenSSL
    builds refuse these outright, in which case the version is reported as
    not enabled.
    """
    enabled = []
    for name, version in LEGACY_TLS_VERSIONS.items():
        try:
            context = insecure_context(minimum=version, maximum=version)
            context.set_ciphers("ALL:@SECLEVEL=0")
        except (ValueError, ssl.SSLError) as e:
            logger.debug("Local OpenSSL cannot offer %s: %r", name, e)
            continue
        if await _handshake_succeeds(host, port, context):
            enabled.append(name)
    return enabled
