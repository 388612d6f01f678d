import warnings
from typing import List, Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "CHANGE_THIS_PRODUCTION_SECRET_MIN_32_CHARS",
    "secret",
}


class Settings(BaseSettings):
    APP_NAME: str = "Hubisck"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"

    # JWT issued by the auth provider (HS256 shared secret)
    SECRET_KEY: str = "change_this"
    ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = ""  # e.g. "authenticated"; empty = do not check

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Logging; unset = derived from APP_ENV
    LOG_LEVEL: Optional[str] = None
    LOG_JSON: Optional[bool] = None

    # Database
    DATABASE_URL: Optional[str] = None  # overrides POSTGRES_* when set
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "hubisck"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # ── Platform identity ──
    PLATFORM_NAME: str = "hubisck"                 # TXT host prefix: _hubisck-verify.<domain>
    PLATFORM_DOMAIN: str = "hubisck.com"           # shared domain, free subdomains live under it
    PLATFORM_CNAME_TARGET: str = "hubisck.com"     # required CNAME value for sub-domains
    PLATFORM_EDGE_IP: str = "76.76.21.21"          # required A record for root domains

    # ── DNS verification ──
    DNS_LOOKUP_TIMEOUT: float = 3.0                # seconds, per lookup
    DNS_NAMESERVERS: str = ""                      # comma separated; empty = system resolvers
    DNS_CNAME_ALLOW_SUBDOMAINS: bool = False       # accept *.PLATFORM_CNAME_TARGET as CNAME value

    # ── Re-verification schedule ──
    DOMAIN_RECHECK_INTERVAL_SECONDS: int = 30
    DOMAIN_RECHECK_MAX_ATTEMPTS: int = 120         # 30s * 120 = 1 hour of polling
    DOMAIN_SWEEP_INTERVAL_SECONDS: int = 600
    DOMAIN_SWEEP_STALE_MINUTES: int = 30
    DOMAIN_SWEEP_BATCH_SIZE: int = 200

    # Host → tenant cache used by CustomDomainMiddleware
    DOMAIN_CACHE_TTL: int = 60

    # Extra reserved subdomain labels, comma separated
    RESERVED_SUBDOMAINS_EXTRA: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set the auth provider's JWT secret (≥ 32 chars) in .env or environment."
                )
            if not self.DATABASE_URL and self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
            if self.DNS_CNAME_ALLOW_SUBDOMAINS:
                warnings.warn(
                    "DNS_CNAME_ALLOW_SUBDOMAINS is enabled: any CNAME under "
                    f"{self.PLATFORM_CNAME_TARGET} will pass routing verification.",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def verification_txt_prefix(self) -> str:
        return f"_{self.PLATFORM_NAME}-verify"

    @property
    def dns_nameservers(self) -> List[str]:
        return [ns.strip() for ns in self.DNS_NAMESERVERS.split(",") if ns.strip()]

    @property
    def reserved_subdomains_extra(self) -> List[str]:
        return [n.strip().lower() for n in self.RESERVED_SUBDOMAINS_EXTRA.split(",") if n.strip()]

settings = Settings()
