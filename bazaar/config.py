"""
Settings — environment-driven configuration.

    settings = Settings.from_env()
    app = create_app(settings)

Tests build Settings directly instead of touching the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./bazaar.db"


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Application settings.

    Note: Immutable — use .with_env() / dataclasses.replace for variants.
    """

    env: str = "development"
    database_url: str = DEFAULT_DATABASE_URL
    session_ttl: timedelta = timedelta(days=7)
    guest_ttl: timedelta = timedelta(days=30)
    paystack_secret: str | None = None
    kyc_partner_id: str | None = None
    kyc_api_key: str | None = None
    cors_origins: tuple[str, ...] = field(default_factory=tuple)
    currency: str = "GHS"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def secure_cookies(self) -> bool:
        return self.is_production

    def with_env(self, env: str) -> Settings:
        return replace(self, env=env)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        source = os.environ if environ is None else environ
        origins = source.get("BAZAAR_CORS_ORIGINS", "")
        return cls(
            env=source.get("BAZAAR_ENV", "development"),
            database_url=source.get("BAZAAR_DATABASE_URL", DEFAULT_DATABASE_URL),
            session_ttl=timedelta(days=int(source.get("BAZAAR_SESSION_TTL_DAYS", "7"))),
            guest_ttl=timedelta(days=int(source.get("BAZAAR_GUEST_TTL_DAYS", "30"))),
            paystack_secret=source.get("BAZAAR_PAYSTACK_SECRET") or None,
            kyc_partner_id=source.get("BAZAAR_KYC_PARTNER_ID") or None,
            kyc_api_key=source.get("BAZAAR_KYC_API_KEY") or None,
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            currency=source.get("BAZAAR_CURRENCY", "GHS"),
            log_level=source.get("BAZAAR_LOG_LEVEL", "INFO"),
        )


__all__ = ("Settings",)
