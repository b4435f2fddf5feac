import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit

from secprobe.checks.scoring import (
    MAX_RAW_SCORE,
    analyze_security_headers,
    calculate_grade,
    calculate_score_with_details,
    category_weights,
    composite_score,
    normalize_score,
)
from secprobe.checks.ssl import (
    assemble_ssl_result,
    build_certificate_info,
    detect_protocols,
    evaluate_cipher_strength,
    no_https_result,
)
from secprobe.core import tls
from secprobe.core.config import settings
from secprobe.core.errors import InputError, TlsError, TlsProbeError, TlsUnavailableError
from secprobe.core.http import client_for, fetch, resolve_optimal_url
from secprobe.models.schemas import (
    CategoryScore,
    HeadersScanResult,
    ScanMetadata,
    ScanOptions,
    ScanReport,
    ScoreBreakdown,
    SslScanResult,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _tls_target(url: str) -> Tuple[str, int]:
    parts = urlsplit(url if "://" in url else f"https://{url}")
    if not parts.hostname:
        raise InputError(f"URL has no host: {url}", url=url)
    if parts.scheme.lower() != "https":
        logger.warning("Non-HTTPS URL given for TLS scan: %s, probing https instead", url)
        # an explicit port belongs to the http service, not the TLS one
        return parts.hostname, 443
    return parts.hostname, parts.port or 443


async def scan_headers(url: str) -> HeadersScanResult:
    """Fetch the page (upgrading to HTTPS when possible) and score its headers."""
    logger.info("Starting header scan for %s", url)
    async with client_for() as client:
        optimal = await resolve_optimal_url(client, url)
        if optimal.upgraded:
            logger.info("URL upgraded to HTTPS: %s -> %s (%s)", url, optimal.url, optimal.reason)
        response = await fetch(client, optimal.url)

    final_url = str(response.url)
    if final_url != optimal.url:
        logger.info(
            "Followed redirects: %s -> %s (status %s, %d hops)",
            optimal.url, final_url, response.status_code, len(response.history),
        )

    analysis = analyze_security_headers(response.headers)
    raw_score, details = calculate_score_with_details(analysis.headers)
    score = normalize_score(raw_score)

    result = HeadersScanResult(
        headers=analysis.headers,
        missing_headers=analysis.missing_headers,
        recommendations=analysis.recommendations,
        raw_score=raw_score,
        max_score=MAX_RAW_SCORE,
        score=score,
        score_breakdown=ScoreBreakdown(
            raw_score=raw_score,
            max_score=MAX_RAW_SCORE,
            normalized_score=score,
            details=details,
        ),
        scan_metadata=ScanMetadata(
            original_url=url,
            scanned_url=final_url,
            https_upgraded=optimal.upgraded,
            upgrade_reason=optimal.reason,
            status_code=response.status_code,
        ),
        scanned_at=_now(),
    )
    logger.info(
        "Header scan finished for %s: raw=%s/%s normalized=%s missing=%d",
        final_url, raw_score, MAX_RAW_SCORE, score, len(analysis.missing_headers),
    )
    return result


async def scan_ssl(url: str, strict: bool = False) -> SslScanResult:
    """
    Probe the target's TLS setup. "No HTTPS" is a scored result (0 / F)
    unless strict=True, in which case TlsUnavailableError is raised instead.
    """
    host, port = _tls_target(url)
    logger.info("Starting SSL/TLS scan for %s:%s", host, port)

    if not await tls.check_https_availability(host, port):
        if strict:
            raise TlsUnavailableError(f"HTTPS is not available on {host}:{port}", url=url)
        logger.warning("HTTPS not available for %s:%s", host, port)
        return no_https_result(host, scanned_at=_now())

    handshake = await tls.get_handshake_info(host, port)
    certificate = None
    if handshake.certificate_der:
        try:
            certificate = build_certificate_info(handshake.certificate_der, host)
        except ValueError as e:
            raise TlsProbeError(f"Could not parse certificate from {host}:{port}: {e}", url=url) from e

    modern_ok = await tls.test_modern_tls(host, port)
    legacy = await tls.probe_legacy_protocols(host, port) if settings.probe_legacy_tls else []
    protocols = detect_protocols(modern_ok, legacy)
    ciphers = [evaluate_cipher_strength(handshake.cipher_name)] if handshake.cipher_name else []

    result = assemble_ssl_result(certificate, protocols, ciphers, scanned_at=_now())
    logger.info(
        "SSL/TLS scan finished for %s: score=%s grade=%s cert_valid=%s vulns=%d",
        host, result.score, result.grade,
        certificate.valid if certificate else None, len(result.vulnerabilities),
    )
    return result


def build_report(
    url: str,
    headers: Optional[HeadersScanResult],
    ssl: Optional[SslScanResult],
    ssl_error: Optional[str] = None,
) -> ScanReport:
    header_score = headers.score if headers else None
    ssl_score = ssl.score if ssl else None
    total = composite_score(header_score, ssl_score)
    if total is None:
        raise InputError("Nothing was scanned", url=url)

    header_weight, ssl_weight = category_weights(headers is not None, ssl is not None)
    breakdown = [
        CategoryScore(
            category="headers", score=header_score, weight=header_weight,
            contribution=round((header_score or 0) * header_weight, 2),
        ),
        CategoryScore(
            category="ssl", score=ssl_score, weight=ssl_weight,
            contribution=round((ssl_score or 0) * ssl_weight, 2),
        ),
    ]
    return ScanReport(
        id=str(uuid.uuid4()),
        url=url,
        headers=headers,
        ssl=ssl,
        ssl_error=ssl_error,
        composite_score=total,
        grade=calculate_grade(total),
        breakdown=breakdown,
        scanned_at=_now(),
    )


async def run_scan(url: str, options: Optional[ScanOptions] = None) -> ScanReport:
    """
    Header scan and SSL scan run side by side. A header failure aborts the
    scan; an SSL failure only drops the SSL half of the composite.
    """
    options = options or ScanOptions()
    if not (options.include_headers or options.include_ssl):
        raise InputError("At least one of include_headers / include_ssl is required", url=url)

    async def _skip():
        return None

    headers, ssl_outcome = await asyncio.gather(
        scan_headers(url) if options.include_headers else _skip(),
        scan_ssl(url) if options.include_ssl else _skip(),
        return_exceptions=True,
    )
    if isinstance(headers, BaseException):
        raise headers

    ssl_result, ssl_error = None, None
    if isinstance(ssl_outcome, BaseException):
        if headers is None or not isinstance(ssl_outcome, Exception):
            raise ssl_outcome
        if isinstance(ssl_outcome, TlsError):
            logger.warning("SSL scan failed for %s, scoring headers only: %s", url, ssl_outcome)
        else:
            logger.error(
                "Unexpected SSL scan failure for %s, scoring headers only", url,
                exc_info=ssl_outcome,
            )
        ssl_error = str(ssl_outcome) or type(ssl_outcome).__name__
    else:
        ssl_result = ssl_outcome

    report = build_report(url, headers, ssl_result, ssl_error)
    logger.info("Scan finished for %s: composite=%s grade=%s", url, report.composite_score, report.grade)
    return report
