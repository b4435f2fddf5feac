"""
SSL/TLS rules: certificate facts, protocol and cipher classification,
vulnerability derivation and the 100-point SSL score.

Everything here is a pure function over data the prober collected; nothing
touches the network. Vulnerabilities are inferred from configuration, no
exploit is ever attempted.

Score grid (100 points):
    certificate valid & CA-signed   30  (15 if valid but self-signed)
    strong protocols                25  (minus 5 per deprecated protocol enabled)
    strong ciphers                  20
    no known vulnerabilities        15  (minus 5 critical / 3 high / 1 medium)
    best practices                  10  (5 if a certificate exists at all)
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from secprobe.checks.scoring import calculate_grade, clamp, round_half_up
from secprobe.models.schemas import (
    CertificateInfo,
    CipherInfo,
    ProtocolInfo,
    SslScanResult,
    VulnerabilityInfo,
)

CERTIFICATE_VALID = 30
STRONG_PROTOCOLS = 25
STRONG_CIPHERS = 20
NO_VULNERABILITIES = 15
BEST_PRACTICES = 10

DEPRECATED_PROTOCOL_PENALTY = 5
SEVERITY_PENALTY = {"critical": 5, "high": 3, "medium": 1}
EXPIRY_WARNING_DAYS = 30

POODLE_CVE = "CVE-2014-3566"

LEGACY_PROTOCOLS = (
    ("SSLv2", "2.0"),
    ("SSLv3", "3.0"),
    ("TLSv1", "1.0"),
    ("TLSv1.1", "1.1"),
)
MODERN_PROTOCOLS = (
    ("TLSv1.2", "1.2"),
    ("TLSv1.3", "1.3"),
)

WEAK_CIPHER_MARKERS = ("NULL", "EXPORT", "DES", "RC4", "MD5")
STRONG_CIPHER_MARKERS = ("256", "CHACHA20", "GCM")


# ---------- Certificate ----------
def _first_attr(name: x509.Name, oid) -> Optional[str]:
    attrs = name.get_attributes_for_oid(oid)
    return str(attrs[0].value) if attrs else None


def _signature_algorithm(cert: x509.Certificate) -> str:
    oid = cert.signature_algorithm_oid
    return getattr(oid, "_name", None) or oid.dotted_string or "Unknown"


def build_certificate_info(
    der: bytes, hostname: str, now: Optional[datetime] = None
) -> CertificateInfo:
    cert = x509.load_der_x509_certificate(der)
    now = now or datetime.now(timezone.utc)

    valid_from = cert.not_valid_before_utc
    valid_to = cert.not_valid_after_utc

    subject_cn = _first_attr(cert.subject, NameOID.COMMON_NAME)
    issuer_cn = _first_attr(cert.issuer, NameOID.COMMON_NAME)
    issuer_org = _first_attr(cert.issuer, NameOID.ORGANIZATION_NAME)

    if subject_cn is None and issuer_cn is None:
        # no CN on either side, fall back to the full distinguished names
        self_signed = cert.subject == cert.issuer
    else:
        self_signed = subject_cn == issuer_cn

    return CertificateInfo(
        valid=valid_from <= now <= valid_to,
        issuer=issuer_org or issuer_cn or "Unknown",
        subject=subject_cn or hostname,
        serial_number=format(cert.serial_number, "X"),
        valid_from=valid_from,
        valid_to=valid_to,
        days_until_expiration=(valid_to - now).days,
        self_signed=self_signed,
        signature_algorithm=_signature_algorithm(cert),
    )


# ---------- Protocols ----------
def detect_protocols(modern_tls_ok: bool, legacy_enabled: Iterable[str] = ()) -> List[ProtocolInfo]:
    """
    Legacy protocols are reported disabled unless the optional legacy probe
    proved otherwise. A successful modern handshake marks TLS 1.2 and 1.3 as
    enabled; they stay intrinsically secure either way.
    """
    legacy_enabled = set(legacy_enabled)
    protocols = [
        ProtocolInfo(name=name, version=version, enabled=name in legacy_enabled, secure=False)
        for name, version in LEGACY_PROTOCOLS
    ]
    protocols += [
        ProtocolInfo(name=name, version=version, enabled=modern_tls_ok, secure=True)
        for name, version in MODERN_PROTOCOLS
    ]
    return protocols


# ---------- Ciphers ----------
def evaluate_cipher_strength(cipher_name: str) -> CipherInfo:
    name = cipher_name.upper()
    if any(marker in name for marker in WEAK_CIPHER_MARKERS):
        return CipherInfo(name=cipher_name, strength=0, secure=False)
    if "128" in name:
        return CipherInfo(name=cipher_name, strength=128, secure=True)
    if any(marker in name for marker in STRONG_CIPHER_MARKERS):
        return CipherInfo(name=cipher_name, strength=256, secure=True)
    return CipherInfo(name=cipher_name, strength=128, secure=True)


# ---------- Vulnerabilities ----------
def detect_vulnerabilities(
    protocols: List[ProtocolInfo],
    ciphers: List[CipherInfo],
    certificate: Optional[CertificateInfo] = None,
) -> List[VulnerabilityInfo]:
    vulns: List[VulnerabilityInfo] = []
    deprecated = {p.name for p in protocols if p.enabled and not p.secure}

    if "SSLv3" in deprecated:
        vulns.append(VulnerabilityInfo(
            id="POODLE",
            name="POODLE Attack",
            severity="high",
            description="SSLv3 is vulnerable to the POODLE attack",
            affected="SSLv3",
            cve_id=POODLE_CVE,
        ))

    if deprecated & {"TLSv1", "TLSv1.1"}:
        vulns.append(VulnerabilityInfo(
            id="DEPRECATED_TLS",
            name="Deprecated TLS protocol",
            severity="medium",
            description="TLS 1.0 and 1.1 are deprecated and should be disabled",
            affected="TLS 1.0/1.1",
        ))

    weak = [c for c in ciphers if not c.secure]
    if weak:
        vulns.append(VulnerabilityInfo(
            id="WEAK_CIPHER",
            name="Weak cipher detected",
            severity="medium",
            description="The server negotiates weak or obsolete ciphers",
            affected=", ".join(c.name for c in weak),
        ))

    if certificate:
        if not certificate.valid:
            vulns.append(VulnerabilityInfo(
                id="INVALID_CERT",
                name="Invalid certificate",
                severity="critical",
                description="The SSL certificate is expired or not yet valid",
                affected=certificate.subject,
            ))
        if certificate.self_signed:
            vulns.append(VulnerabilityInfo(
                id="SELF_SIGNED",
                name="Self-signed certificate",
                severity="high",
                description="The certificate is self-signed and not trusted by a recognised CA",
                affected=certificate.subject,
            ))
        if 0 <= certificate.days_until_expiration < EXPIRY_WARNING_DAYS:
            vulns.append(VulnerabilityInfo(
                id="EXPIRING_SOON",
                name="Certificate expires soon",
                severity="low",
                description=f"The certificate expires in {certificate.days_until_expiration} days",
                affected=certificate.subject,
            ))

    return vulns


# ---------- Score ----------
def calculate_ssl_score(
    certificate: Optional[CertificateInfo],
    protocols: List[ProtocolInfo],
    ciphers: List[CipherInfo],
    vulnerabilities: List[VulnerabilityInfo],
) -> int:
    score = 0.0

    if certificate and certificate.valid:
        score += CERTIFICATE_VALID * (0.5 if certificate.self_signed else 1)

    enabled = [p for p in protocols if p.enabled]
    if enabled:
        secure_enabled = [p for p in enabled if p.secure]
        score += len(secure_enabled) / len(enabled) * STRONG_PROTOCOLS
        score -= (len(enabled) - len(secure_enabled)) * DEPRECATED_PROTOCOL_PENALTY

    if ciphers:
        score += len([c for c in ciphers if c.secure]) / len(ciphers) * STRONG_CIPHERS

    if not vulnerabilities:
        score += NO_VULNERABILITIES
    else:
        penalty = sum(SEVERITY_PENALTY.get(v.severity, 0) for v in vulnerabilities)
        score += max(0, NO_VULNERABILITIES - penalty)

    if (
        certificate
        and certificate.valid
        and not certificate.self_signed
        and certificate.days_until_expiration > EXPIRY_WARNING_DAYS
    ):
        score += BEST_PRACTICES
    elif certificate:
        score += BEST_PRACTICES * 0.5

    return int(clamp(round_half_up(score)))


def no_https_result(host: str, scanned_at: Optional[datetime] = None) -> SslScanResult:
    return SslScanResult(
        score=0,
        grade="F",
        has_https=False,
        vulnerabilities=[VulnerabilityInfo(
            id="NO_HTTPS",
            name="HTTPS not available",
            severity="critical",
            description="The server does not support HTTPS",
            affected=host,
        )],
        scanned_at=scanned_at or datetime.now(timezone.utc),
    )


def assemble_ssl_result(
    certificate: Optional[CertificateInfo],
    protocols: List[ProtocolInfo],
    ciphers: List[CipherInfo],
    scanned_at: Optional[datetime] = None,
) -> SslScanResult:
    vulnerabilities = detect_vulnerabilities(protocols, ciphers, certificate)
    score = calculate_ssl_score(certificate, protocols, ciphers, vulnerabilities)
    return SslScanResult(
        score=score,
        grade=calculate_grade(score),
        has_https=True,
        certificate=certificate,
        protocols=protocols,
        ciphers=ciphers,
        vulnerabilities=vulnerabilities,
        scanned_at=scanned_at or datetime.now(timezone.utc),
    )
