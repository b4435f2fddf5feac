"""Tests for the per-header value rules."""

import pytest

from secprobe.checks.cookies import CookieFlagsCheck, parse_cookie_flags
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
from secprobe.checks.hsts import HSTSCheck, parse_max_age


class TestHSTS:
    """Test Strict-Transport-Security rule."""

    def test_one_year_with_subdomains_is_secure(self):
        verdict = HSTSCheck().evaluate("max-age=31536000; includeSubDomains")
        assert verdict.secure is True
        assert verdict.recommendation is None

    def test_short_max_age_is_insecure(self):
        verdict = HSTSCheck().evaluate("max-age=3600")
        assert verdict.secure is False
        assert "3600" in verdict.recommendation

    def test_missing_subdomains_keeps_secure_with_advice(self):
        verdict = HSTSCheck().evaluate("max-age=63072000; preload")
        assert verdict.secure is True
        assert "includeSubDomains" in verdict.recommendation

    def test_subdomains_matched_case_insensitively(self):
        assert HSTSCheck().evaluate("max-age=31536000; INCLUDESUBDOMAINS").recommendation is None

    def test_unparseable_max_age_counts_as_zero(self):
        verdict = HSTSCheck().evaluate("includeSubDomains")
        assert verdict.secure is False
        assert "currently 0" in verdict.recommendation

    def test_quoted_max_age(self):
        assert parse_max_age('max-age="31536000"') == 31536000


class TestCSP:
    """Test Content-Security-Policy rule."""

    def test_self_policy_is_secure(self):
        assert CSPCheck().evaluate("default-src 'self'; script-src 'self'").secure is True

    def test_bare_wildcard_is_flagged(self):
        verdict = CSPCheck().evaluate("default-src *")
        assert verdict.secure is False
        assert "wildcard" in verdict.recommendation

    def test_wildcard_subdomain_is_allowed(self):
        check = CSPCheck()
        assert check.issues("default-src 'self' https://*.example.com; script-src 'self'") == []

    def test_wildcard_on_script_src(self):
        issues = CSPCheck().issues("default-src 'self'; script-src * 'self'")
        assert any("wildcard" in i for i in issues)

    def test_wildcard_on_other_directive_ignored(self):
        assert CSPCheck().issues("default-src 'self'; img-src *; script-src 'self'") == []

    def test_unsafe_directives(self):
        issues = CSPCheck().issues("default-src 'self'; script-src 'self' 'unsafe-inline' 'unsafe-eval'")
        assert "unsafe-inline detected" in issues
        assert "unsafe-eval detected" in issues

    def test_default_none_is_overly_restrictive(self):
        issues = CSPCheck().issues("default-src 'none'; img-src 'self'; style-src 'self'")
        assert issues == ["default-src 'none' is overly restrictive"]

    def test_missing_default_src(self):
        issues = CSPCheck().issues("script-src 'self' https://cdn.example.com")
        assert issues == ["default-src missing"]

    def test_short_policy_is_incomplete(self):
        issues = CSPCheck().issues("default-src 'self'")
        assert issues == ["policy too short, probably incomplete"]


class TestSetCookie:
    """Test Set-Cookie attribute rule."""

    def test_all_flags(self):
        verdict = CookieFlagsCheck().evaluate("sid=1; Secure; HttpOnly; SameSite=Strict")
        assert verdict.secure is True
        assert verdict.recommendation is None

    def test_secure_httponly_without_samesite(self):
        verdict = CookieFlagsCheck().evaluate("Secure; HttpOnly")
        assert verdict.secure is True
        assert "SameSite missing" in verdict.recommendation

    def test_secure_alone_is_insecure(self):
        verdict = CookieFlagsCheck().evaluate("Secure")
        assert verdict.secure is False
        assert "HttpOnly missing" in verdict.recommendation
        assert "SameSite missing" in verdict.recommendation

    def test_samesite_lax_advises_strict(self):
        verdict = CookieFlagsCheck().evaluate("sid=1; HttpOnly; SameSite=Lax")
        assert verdict.secure is True
        assert "consider Strict" in verdict.recommendation

    def test_samesite_none_flagged(self):
        verdict = CookieFlagsCheck().evaluate("sid=1; SameSite=None")
        assert verdict.secure is False
        assert "least secure" in verdict.recommendation

    def test_flags_are_case_insensitive(self):
        flags = parse_cookie_flags("sid=1; secure; httponly; samesite=strict")
        assert flags == (True, True, "strict")
        assert flags.count == 3

    def test_cookie_named_like_a_flag_does_not_count(self):
        flags = parse_cookie_flags("secure_id=1; Path=/")
        assert flags.secure is False

    def test_multiple_cookies_joined(self):
        flags = parse_cookie_flags(
            "a=1; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Secure, b=2; HttpOnly"
        )
        assert flags.secure and flags.httponly
        assert flags.samesite is None


class TestSimpleRules:
    """Test allow-list and presence rules."""

    @pytest.mark.parametrize("value", ["nosniff", "NoSniff", " nosniff "])
    def test_xcto_secure(self, value):
        assert XContentTypeOptionsCheck.evaluate(value).secure is True

    def test_xcto_insecure(self):
        assert XContentTypeOptionsCheck.evaluate("sniff").recommendation == 'Use the value "nosniff"'

    @pytest.mark.parametrize("value,secure", [("DENY", True), ("sameorigin", True), ("ALLOW-FROM x", False)])
    def test_xfo(self, value, secure):
        assert XFrameOptionsCheck.evaluate(value).secure is secure

    @pytest.mark.parametrize(
        "value,secure",
        [("no-referrer", True), ("strict-origin-when-cross-origin", True), ("unsafe-url", False)],
    )
    def test_referrer_policy(self, value, secure):
        assert ReferrerPolicyCheck.evaluate(value).secure is secure

    def test_permissions_policy_presence_is_enough(self):
        assert PermissionsPolicyCheck.evaluate("anything at all").secure is True

    def test_cross_origin_policies(self):
        assert CrossOriginOpenerPolicyCheck.evaluate("same-origin-allow-popups").secure
        assert not CrossOriginOpenerPolicyCheck.evaluate("unsafe-none").secure
        assert CrossOriginEmbedderPolicyCheck.evaluate("require-corp").secure
        assert not CrossOriginEmbedderPolicyCheck.evaluate("credentialless").secure
        assert CrossOriginResourcePolicyCheck.evaluate("cross-origin").secure
        assert not CrossOriginResourcePolicyCheck.evaluate("anywhere").secure
