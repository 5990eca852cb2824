from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


DEFAULT_PERFORMANCE_AUDIT_IDS = [
    "first-contentful-paint",
    "largest-contentful-paint",
    "speed-index",
    "interactive",
    "total-blocking-time",
    "cumulative-layout-shift",
    "server-response-time",
    "render-blocking-resources",
    "uses-long-cache-ttl",
    "unused-javascript",
    "unused-css-rules",
    "uses-optimized-images",
    "uses-text-compression",
    "dom-size",
    "bootup-time",
    "mainthread-work-breakdown",
]

DEFAULT_ACCESSIBILITY_AUDIT_IDS = [
    "image-alt",
    "color-contrast",
    "link-name",
    "button-name",
    "document-title",
    "html-has-lang",
    "label",
    "heading-order",
    "aria-hidden-body",
    "aria-allowed-attr",
    "aria-required-attr",
    "meta-viewport",
    "tabindex",
    "focus-traps",
    "logical-tab-order",
]


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "WebScan API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # ── Database ────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./webscan.db"
    DB_INIT_MAX_ATTEMPTS: int = 10
    DB_INIT_RETRY_DELAY_SECONDS: float = 2.0
    CACHE_KEEPALIVE_SECONDS: int = 300

    # ── Scan queue & cache ──────────────────────
    SCAN_CONCURRENCY: int = 2
    SCAN_EXPIRATION_SECONDS: int = 172800  # 48 hours
    DEDUPLICATE_IN_FLIGHT: bool = True

    # ── Normalizer ──────────────────────────────
    ERROR_SCORE_THRESHOLD: float = 0.5
    ALERT_SCORE_THRESHOLD: float = 0.9
    MAX_ERRORS_PER_CATEGORY: int = 3
    MAX_ALERTS_PER_CATEGORY: int = 5
    PERFORMANCE_AUDIT_IDS: List[str] = DEFAULT_PERFORMANCE_AUDIT_IDS
    ACCESSIBILITY_AUDIT_IDS: List[str] = DEFAULT_ACCESSIBILITY_AUDIT_IDS
    CUSTOM_CHECKS_ENABLED: bool = True

    # ── Scan executor ───────────────────────────
    SCAN_MAX_ATTEMPTS: int = 3
    SCAN_RETRY_DELAY_SECONDS: float = 2.0
    NAVIGATION_TIMEOUT_SECONDS: int = 30
    AUDIT_TIMEOUT_SECONDS: int = 120
    SETTLE_DELAY_SECONDS: float = 2.0
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    CHROMEDRIVER_PATH: Optional[str] = None
    CHROME_BINARY: Optional[str] = None
    USE_WEBDRIVER_MANAGER: bool = False

    # ── Lighthouse ──────────────────────────────
    LIGHTHOUSE_BIN: str = "lighthouse"
    RESTRICT_AUDITS_TO_ALLOW_LIST: bool = False

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
