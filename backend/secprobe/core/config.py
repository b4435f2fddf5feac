import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

DEFAULT_UA = (
    "SecProbeScanner/1.0 (+https://example.local/secprobe) "
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    user_agent: str = DEFAULT_UA
    http_timeout: float = 10.0
    connect_timeout: float = 5.0
    upgrade_timeout: float = 5.0
    tls_timeout: float = 5.0
    tls_test_timeout: float = 3.0
    max_redirects: int = 5
    verify_tls: bool = True
    probe_legacy_tls: bool = False
    scan_deadline: float = 30.0
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from SECPROBE_* environment variables (and backend/.env)."""
    return Settings(
        user_agent=os.getenv("SECPROBE_USER_AGENT", DEFAULT_UA),
        http_timeout=_env_float("SECPROBE_HTTP_TIMEOUT", 10.0),
        connect_timeout=_env_float("SECPROBE_CONNECT_TIMEOUT", 5.0),
        upgrade_timeout=_env_float("SECPROBE_UPGRADE_TIMEOUT", 5.0),
        tls_timeout=_env_float("SECPROBE_TLS_TIMEOUT", 5.0),
        tls_test_timeout=_env_float("SECPROBE_TLS_TEST_TIMEOUT", 3.0),
        max_redirects=int(_env_float("SECPROBE_MAX_REDIRECTS", 5)),
        verify_tls=_env_bool("SECPROBE_VERIFY_TLS", True),
        probe_legacy_tls=_env_bool("SECPROBE_PROBE_LEGACY_TLS", False),
        scan_deadline=_env_float("SECPROBE_SCAN_DEADLINE", 30.0),
        cors_origins=_env_list(
            "SECPROBE_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ),
        log_level=os.getenv("SECPROBE_LOG_LEVEL", "INFO").upper(),
    )


settings = load_settings()
