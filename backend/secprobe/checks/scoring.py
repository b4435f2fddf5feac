"""
Header scoring.

Official grid, 64 raw points normalised to 100:

    critical headers        CSP 10, HSTS 8, XFO 7, XCTO 5, Set-Cookie 15
    privacy & permissions   Referrer-Policy 3, Permissions-Policy 3
    cross-origin            COOP 3, COEP 3, CORP 3
    information leakage     Server -2, X-Powered-By -2 (absence earns +2 each)

Each header lands in one state: MISSING (0), PRESENT_SECURE (full weight),
PRESENT_INSECURE (half weight) or, for the leakage headers, PENALTY (-2).
"""
import math
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

from secprobe.checks.cookies import CookieFlagsCheck
from secprobe.checks.headers import (
    CSPCheck,
    CrossOriginEmbedderPolicyCheck,
    CrossOriginOpenerPolicyCheck,
    CrossOriginResourcePolicyCheck,
    PermissionsPolicyCheck,
    ReferrerPolicyCheck,
    XContentTypeOptionsCheck,
    XFrameOptionsCheck,
)
from secprobe.checks.hsts import HSTSCheck
from secprobe.models.schemas import Grade, HeaderFinding, HeaderScoreDetail

HEADER_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "Content-Security-Policy": 10,
    "Strict-Transport-Security": 8,
    "X-Frame-Options": 7,
    "X-Content-Type-Options": 5,
    "Set-Cookie": 15,
    "Referrer-Policy": 3,
    "Permissions-Policy": 3,
    "Cross-Origin-Opener-Policy": 3,
    "Cross-Origin-Embedder-Policy": 3,
    "Cross-Origin-Resource-Policy": 3,
    "Server": -2,
    "X-Powered-By": -2,
})
PENALTY_HEADERS = ("Server", "X-Powered-By")
MAX_RAW_SCORE = 64
PARTIAL_CREDIT = 0.5

CHECKS = {
    c.name: c
    for c in (
        CSPCheck(),
        HSTSCheck(),
        XFrameOptionsCheck,
        XContentTypeOptionsCheck,
        CookieFlagsCheck(),
        ReferrerPolicyCheck,
        PermissionsPolicyCheck,
        CrossOriginOpenerPolicyCheck,
        CrossOriginEmbedderPolicyCheck,
        CrossOriginResourcePolicyCheck,
    )
}

GRADE_THRESHOLDS: Tuple[Tuple[int, Grade], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B"),
    (60, "C"),
    (50, "D"),
)


class HeaderAnalysis(NamedTuple):
    headers: Dict[str, HeaderFinding]
    missing_headers: List[str]
    recommendations: List[str]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def calculate_grade(score: float) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def normalize_headers(raw_headers) -> Dict[str, str]:
    """
    Lowercase header names once. Accepts an httpx.Headers (repeated fields such
    as Set-Cookie are joined with ", ") or any mapping / list of pairs.
    """
    items = raw_headers.multi_items() if hasattr(raw_headers, "multi_items") else (
        raw_headers.items() if hasattr(raw_headers, "items") else raw_headers
    )
    normalized: Dict[str, str] = {}
    for key, value in items:
        k = str(key).lower()
        v = str(value)
        normalized[k] = f"{normalized[k]}, {v}" if k in normalized else v
    return normalized


def analyze_security_headers(raw_headers) -> HeaderAnalysis:
    normalized = normalize_headers(raw_headers)
    headers: Dict[str, HeaderFinding] = {}
    missing: List[str] = []
    recommendations: List[str] = []

    for name, weight in HEADER_WEIGHTS.items():
        value: Optional[str] = normalized.get(name.lower())
        if value is not None and not value.strip():
            value = None

        if name in PENALTY_HEADERS:
            if value:
                headers[name] = HeaderFinding(
                    name=name, present=True, raw_value=value, secure=False, weight=weight,
                    recommendation="Remove this header to avoid information leakage",
                )
                recommendations.append(
                    f"{name}: Information leakage - remove this header "
                    f"(penalty of {abs(weight)} points)"
                )
            else:
                headers[name] = HeaderFinding(
                    name=name, present=False, secure=True, weight=abs(weight),
                )
            continue

        if value is None:
            missing.append(name)
            headers[name] = HeaderFinding(
                name=name, present=False, secure=False, weight=weight,
                recommendation=f"Add the {name} header",
            )
            recommendations.append(f"{name}: Missing header - add this security header")
            continue

        verdict = CHECKS[name].evaluate(value)
        headers[name] = HeaderFinding(
            name=name, present=True, raw_value=value, secure=verdict.secure,
            weight=weight, recommendation=verdict.recommendation,
        )
        if verdict.recommendation:
            recommendations.append(f"{name}: {verdict.recommendation}")

    return HeaderAnalysis(headers, missing, recommendations)


def score_header(finding: HeaderFinding) -> HeaderScoreDetail:
    max_points = abs(finding.weight)

    if finding.name in PENALTY_HEADERS:
        if finding.present:
            return HeaderScoreDetail(
                header_name=finding.name, status="PENALTY",
                points_earned=-max_points, max_points=max_points,
                explanation=f"Header present -> penalty of {max_points} points (information leakage)",
            )
        return HeaderScoreDetail(
            header_name=finding.name, status="PRESENT_SECURE",
            points_earned=max_points, max_points=max_points,
            explanation=f"Header absent -> +{max_points} points (good practice)",
        )

    if not finding.present:
        return HeaderScoreDetail(
            header_name=finding.name, status="MISSING", points_earned=0,
            max_points=max_points, explanation=f"Header missing -> 0/{max_points} points",
        )
    if finding.secure:
        return HeaderScoreDetail(
            header_name=finding.name, status="PRESENT_SECURE", points_earned=max_points,
            max_points=max_points, explanation=f"Header secure -> +{max_points} points",
        )
    earned = max_points * PARTIAL_CREDIT
    return HeaderScoreDetail(
        header_name=finding.name, status="PRESENT_INSECURE", points_earned=earned,
        max_points=max_points,
        explanation=f"Header present but insecure -> +{earned:g}/{max_points} points (50%)",
    )


def calculate_score_with_details(
    headers: Mapping[str, HeaderFinding],
) -> Tuple[float, List[HeaderScoreDetail]]:
    details = [score_header(f) for f in headers.values()]
    raw = sum(d.points_earned for d in details)
    return max(0.0, float(raw)), details


def normalize_score(raw_score: float) -> int:
    return int(clamp(round_half_up(raw_score / MAX_RAW_SCORE * 100)))


def composite_score(header_score: Optional[int], ssl_score: Optional[int]) -> Optional[int]:
    """Mean of the two when both exist, otherwise whichever exists."""
    if header_score is not None and ssl_score is not None:
        return round_half_up((header_score + ssl_score) / 2)
    if header_score is not None:
        return header_score
    return ssl_score


def category_weights(has_headers: bool, has_ssl: bool) -> Tuple[float, float]:
    if has_headers and has_ssl:
        return 0.5, 0.5
    return (1.0 if has_headers else 0.0), (1.0 if has_ssl else 0.0)
