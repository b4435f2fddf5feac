import re
from typing import NamedTuple, Optional

from secprobe.checks.base import Verdict

_SAMESITE = re.compile(r"^samesite\s*=\s*(strict|lax|none)$", re.IGNORECASE)


class CookieFlags(NamedTuple):
    secure: bool
    httponly: bool
    samesite: Optional[str]  # "strict" / "lax" / "none"

    @property
    def count(self) -> int:
        return int(self.secure) + int(self.httponly) + int(self.samesite is not None)


def parse_cookie_flags(raw):
    # several cookies may arrive joined with ", "; Expires fragments are not flags
    tokens = [t.strip() for t in re.split(r"[;,]", raw) if t.strip()]
    lowered = [t.lower() for t in tokens]
    samesite = None
    for token in tokens:
        m = _SAMESITE.match(token)
        if m:
            samesite = m.group(1).lower()
            break
    return CookieFlags(
        secure="secure" in lowered,
        httponly="httponly" in lowered,
        samesite=samesite,
    )


class CookieFlagsCheck:
    name = "Set-Cookie"

    def evaluate(self, value):
        flags = parse_cookie_flags(value)
        issues = []
        if not flags.secure:
            issues.append("Secure missing")
        if not flags.httponly:
            issues.append("HttpOnly missing")
        if flags.samesite is None:
            issues.append("SameSite missing")
        elif flags.samesite == "lax":
            issues.append("SameSite=Lax (consider Strict for stronger protection)")
        elif flags.samesite == "none":
            issues.append("SameSite=None (least secure, avoid if possible)")

        # at least 2 of the 3 attributes
        if flags.count >= 2:
            return Verdict(True, f"Possible improvement: {', '.join(issues)}" if issues else None)
        return Verdict(False, f"Insecure cookie: {', '.join(issues)}")
