from typing import NamedTuple, Optional


class Verdict(NamedTuple):
    secure: bool
    recommendation: Optional[str] = None


class AllowedValuesCheck:
    """Header is secure when its (trimmed, lowercased) value is in `allowed`."""

    def __init__(self, name, allowed, recommendation):
        self.name = name
        self.allowed = frozenset(v.lower() for v in allowed)
        self.recommendation = recommendation

    def evaluate(self, value):
        if value.strip().lower() in self.allowed:
            return Verdict(True)
        return Verdict(False, self.recommendation)


class PresenceCheck:
    def __init__(self, name):
        self.name = name

    def evaluate(self, value):
        return Verdict(True)
