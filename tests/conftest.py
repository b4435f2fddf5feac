"""Test configuration and fixtures for SecProbe."""

import asyncio
import socket
import ssl
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _name(cn: str | None, org: str | None = None) -> x509.Name:
    attrs = []
    if cn:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, cn))
    if org:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))
    return x509.Name(attrs)


@pytest.fixture(scope="session")
def signing_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_cert(signing_key) -> Callable[..., bytes]:
    """Build a DER certificate with the given names and validity window."""

    def _make(
        subject_cn: str | None = "example.com",
        issuer_cn: str | None = "Test CA",
        issuer_org: str | None = "Test Org",
        not_before: datetime = NOW - timedelta(days=30),
        not_after: datetime = NOW + timedelta(days=90),
        serial: int = 0xABCDEF,
    ) -> bytes:
        cert = (
            x509.CertificateBuilder()
            .subject_name(_name(subject_cn))
            .issuer_name(_name(issuer_cn, issuer_org))
            .public_key(signing_key.public_key())
            .serial_number(serial)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .sign(signing_key, hashes.SHA256())
        )
        return cert.public_bytes(serialization.Encoding.DER)

    return _make


@pytest.fixture
def secure_headers() -> dict[str, str]:
    """A response carrying every scored header with a passing value."""
    return {
        "Content-Security-Policy": "default-src 'self'; script-src 'self'",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Set-Cookie": "session=abc; Secure; HttpOnly; SameSite=Strict",
        "Referrer-Policy": "no-referrer",
        "Permissions-Policy": "camera=(), microphone=()",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Embedder-Policy": "require-corp",
        "Cross-Origin-Resource-Policy": "same-origin",
    }


@asynccontextmanager
async def serve(handler, ssl_context=None):
    """Run `handler(reader, writer)` on a local port and yield the port.

    Handlers still running on exit are cancelled, so slow servers do not
    hold up teardown.
    """
    tasks = set()

    async def _track(reader, writer):
        task = asyncio.current_task()
        tasks.add(task)
        try:
            await handler(reader, writer)
        except (ConnectionError, OSError, ssl.SSLError, asyncio.IncompleteReadError):
            pass  # client hung up
        finally:
            tasks.discard(task)
            writer.close()

    server = await asyncio.start_server(_track, "127.0.0.1", 0, ssl=ssl_context)
    try:
        yield server.sockets[0].getsockname()[1]
    finally:
        server.close()
        pending = list(tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


def closed_port() -> int:
    """A local port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def self_signed_der(make_cert) -> bytes:
    now = datetime.now(timezone.utc)
    return make_cert(
        subject_cn="localhost",
        issuer_cn="localhost",
        issuer_org=None,
        not_before=now - timedelta(days=1),
        not_after=now + timedelta(days=200),
    )


@pytest.fixture
def server_tls_context(tmp_path, signing_key, self_signed_der) -> ssl.SSLContext:
    """Server-side context presenting the self-signed certificate."""
    cert_file = tmp_path / "cert.pem"
    key_file = tmp_path / "key.pem"
    cert_file.write_bytes(
        x509.load_der_x509_certificate(self_signed_der).public_bytes(serialization.Encoding.PEM)
    )
    key_file.write_bytes(
        signing_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(str(cert_file), str(key_file))
    return context


async def answer_http(reader, writer):
    """Minimal HTTP/1.1 responder: one empty 200 per connection."""
    await reader.readuntil(b"\r\n\r\n")
    writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
    await writer.drain()


async def dribble_headers(reader, writer):
    """Send a 200 status line, then one header line every 200ms for 4s."""
    await reader.readuntil(b"\r\n\r\n")
    writer.write(b"HTTP/1.1 200 OK\r\n")
    for i in range(20):
        writer.write(f"X-Slow-{i}: 1\r\n".encode())
        await writer.drain()
        await asyncio.sleep(0.2)
    writer.write(b"Content-Length: 0\r\n\r\n")
    await writer.drain()
