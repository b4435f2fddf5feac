from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

HeaderStatus = Literal["MISSING", "PRESENT_SECURE", "PRESENT_INSECURE", "PENALTY"]
Severity = Literal["critical", "high", "medium", "low", "info"]
Grade = Literal["A+", "A", "B", "C", "D", "F"]


class _Result(BaseModel):
    # results are produced once per scan and never mutated afterwards
    model_config = ConfigDict(frozen=True)


# ---------- Headers ----------
class HeaderFinding(_Result):
    name: str
    present: bool
    raw_value: Optional[str] = None
    secure: bool
    weight: int
    recommendation: Optional[str] = None


class HeaderScoreDetail(_Result):
    header_name: str
    status: HeaderStatus
    points_earned: float
    max_points: int = Field(ge=0)
    explanation: str


class ScoreBreakdown(_Result):
    raw_score: float
    max_score: int
    normalized_score: int
    details: List[HeaderScoreDetail] = Field(default_factory=list)


class ScanMetadata(_Result):
    original_url: str
    scanned_url: str
    https_upgraded: bool
    upgrade_reason: str
    status_code: Optional[int] = None


class HeadersScanResult(_Result):
    headers: Dict[str, HeaderFinding]
    missing_headers: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    raw_score: float
    max_score: int
    score: int = Field(ge=0, le=100)
    score_breakdown: ScoreBreakdown
    scan_metadata: ScanMetadata
    scanned_at: datetime


# ---------- SSL / TLS ----------
class CertificateInfo(_Result):
    valid: bool
    issuer: str
    subject: str
    serial_number: str
    valid_from: datetime
    valid_to: datetime
    days_until_expiration: int
    self_signed: bool
    signature_algorithm: str


class ProtocolInfo(_Result):
    name: str
    version: str
    enabled: bool
    secure: bool


class CipherInfo(_Result):
    name: str
    strength: int
    secure: bool


class VulnerabilityInfo(_Result):
    id: str
    name: str
    severity: Severity
    description: str
    affected: str
    fixed: bool = False
    cve_id: Optional[str] = None


class SslScanResult(_Result):
    score: int = Field(ge=0, le=100)
    grade: Grade
    has_https: bool
    certificate: Optional[CertificateInfo] = None
    protocols: List[ProtocolInfo] = Field(default_factory=list)
    ciphers: List[CipherInfo] = Field(default_factory=list)
    vulnerabilities: List[VulnerabilityInfo] = Field(default_factory=list)
    scanned_at: datetime


# ---------- Composite ----------
class CategoryScore(_Result):
    category: Literal["headers", "ssl"]
    score: Optional[int] = None
    weight: float
    contribution: float


class ScanReport(_Result):
    id: str
    url: str
    headers: Optional[HeadersScanResult] = None
    ssl: Optional[SslScanResult] = None
    ssl_error: Optional[str] = None
    composite_score: int = Field(ge=0, le=100)
    grade: Grade
    breakdown: List[CategoryScore] = Field(default_factory=list)
    scanned_at: datetime


# ---------- Requests ----------
class ScanOptions(BaseModel):
    # port / technology options from the dashboard are accepted and ignored
    model_config = ConfigDict(extra="ignore")

    include_headers: bool = True
    include_ssl: bool = True


class ScanRequest(BaseModel):
    url: HttpUrl
    options: ScanOptions = Field(default_factory=ScanOptions)
