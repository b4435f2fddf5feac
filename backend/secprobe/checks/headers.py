import re

from secprobe.checks.base import AllowedValuesCheck, PresenceCheck, Verdict

# * with no domain after it, scoped to default-src / script-src
_WILDCARD_PATTERNS = [
    re.compile(r"default-src[^;]*\*(?!\.)", re.IGNORECASE),
    re.compile(r"script-src[^;]*\*(?!\.)", re.IGNORECASE),
]
_DEFAULT_NONE = re.compile(r"default-src[^;]*'none'", re.IGNORECASE)
CSP_MIN_LENGTH = 30


class CSPCheck:
    name = "Content-Security-Policy"

    def issues(self, value):
        lower = value.lower()
        found = []
        if "unsafe-inline" in lower:
            found.append("unsafe-inline detected")
        if "unsafe-eval" in lower:
            found.append("unsafe-eval detected")
        if any(p.search(value) for p in _WILDCARD_PATTERNS):
            found.append("overly permissive wildcard (*) on default-src/script-src")
        if _DEFAULT_NONE.search(value):
            found.append("default-src 'none' is overly restrictive")
        if "default-src" not in lower:
            found.append("default-src missing")
        if len(value.strip()) < CSP_MIN_LENGTH:
            found.append("policy too short, probably incomplete")
        return found

    def evaluate(self, value):
        found = self.issues(value)
        if found:
            return Verdict(False, f"Insecure CSP: {', '.join(found)}")
        return Verdict(True)


XContentTypeOptionsCheck = AllowedValuesCheck(
    "X-Content-Type-Options", ["nosniff"], 'Use the value "nosniff"'
)
XFrameOptionsCheck = AllowedValuesCheck(
    "X-Frame-Options", ["deny", "sameorigin"], "Use DENY or SAMEORIGIN"
)
ReferrerPolicyCheck = AllowedValuesCheck(
    "Referrer-Policy",
    ["no-referrer", "strict-origin", "strict-origin-when-cross-origin", "same-origin"],
    "Use a stricter policy (e.g. strict-origin-when-cross-origin)",
)
PermissionsPolicyCheck = PresenceCheck("Permissions-Policy")
CrossOriginOpenerPolicyCheck = AllowedValuesCheck(
    "Cross-Origin-Opener-Policy",
    ["same-origin", "same-origin-allow-popups"],
    "Use same-origin or same-origin-allow-popups",
)
CrossOriginEmbedderPolicyCheck = AllowedValuesCheck(
    "Cross-Origin-Embedder-Policy", ["require-corp"], "Use require-corp"
)
CrossOriginResourcePolicyCheck = AllowedValuesCheck(
    "Cross-Origin-Resource-Policy",
    ["same-origin", "same-site", "cross-origin"],
    "Use same-origin, same-site or cross-origin",
)
