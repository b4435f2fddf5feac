import re

from secprobe.checks.base import Verdict

MIN_MAX_AGE = 31536000  # one year
_MAX_AGE = re.compile(r"max-age\s*=\s*\"?(\d+)\"?", re.IGNORECASE)


def parse_max_age(header):
    m = _MAX_AGE.search(header)
    return int(m.group(1)) if m else 0


class HSTSCheck:
    name = "Strict-Transport-Security"

    def evaluate(self, value):
        max_age = parse_max_age(value)
        if max_age < MIN_MAX_AGE:
            return Verdict(
                False,
                f"Increase max-age to at least {MIN_MAX_AGE} (currently {max_age})",
            )
        if "includesubdomains" not in value.lower():
            return Verdict(True, "Consider adding includeSubDomains")
        return Verdict(True)
