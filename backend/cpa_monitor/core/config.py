"""
CPA Monitor - Application Settings
Centralized configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import List, Optional, Union
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cpa_monitor.models.policy import (
    AlertThresholds,
    IntegrityPolicy,
    NormalizerPolicy,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # APPLICATION
    # ===========================================
    app_name: str = "CPA Monitor"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    default_timezone: str = "Australia/Sydney"

    # API Prefix
    api_v1_str: str = "/api/v1"

    # ===========================================
    # SUPABASE (warehouse)
    # ===========================================
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    warehouse_table: str = "ad_performance"

    # ===========================================
    # GOOGLE ADS
    # ===========================================
    google_ads_developer_token: Optional[str] = None
    google_ads_client_id: Optional[str] = None
    google_ads_client_secret: Optional[str] = None
    google_ads_refresh_token: Optional[str] = None
    google_ads_customer_id: Optional[str] = None
    google_ads_login_customer_id: Optional[str] = None

    # ===========================================
    # REDIS
    # ===========================================
    redis_url: str = "redis://redis:6379/0"

    # ===========================================
    # CORS
    # ===========================================
    backend_cors_origins: List[AnyHttpUrl] = [
        "http://localhost:3000",
        "http://localhost:4321",
    ]

    # ===========================================
    # CPA POLICY
    # ===========================================
    alert_critical_percent: float = 25.0
    alert_warning_percent: float = 15.0
    alert_improvement_percent: float = -10.0

    integrity_round_spend_unit: float = 100.0
    integrity_round_spend_ratio: float = 0.5
    integrity_placeholder_prefixes: str = "test_,mock_,fake_,demo_"

    cpa_mismatch_tolerance: float = 0.01
    high_cpa_warning: float = 1000.0

    # --- VALIDATORS ---

    @field_validator("backend_cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @property
    def cors_origins(self) -> list[str]:
        """Return CORS origins as list of strings for FastAPI middleware."""
        return [str(origin) for origin in self.backend_cors_origins]

    @property
    def placeholder_prefixes(self) -> tuple[str, ...]:
        """Comma-separated INTEGRITY_PLACEHOLDER_PREFIXES, lowercased."""
        return tuple(
            prefix.strip().lower()
            for prefix in self.integrity_placeholder_prefixes.split(",")
            if prefix.strip()
        )

    @property
    def google_ads_configured(self) -> bool:
        return all([
            self.google_ads_developer_token,
            self.google_ads_client_id,
            self.google_ads_client_secret,
            self.google_ads_refresh_token,
            self.google_ads_customer_id,
        ])

    # --- POLICY BUILDERS ---

    def alert_thresholds(self) -> AlertThresholds:
        return AlertThresholds(
            critical=self.alert_critical_percent,
            warning=self.alert_warning_percent,
            improvement=self.alert_improvement_percent,
        )

    def integrity_policy(self) -> IntegrityPolicy:
        return IntegrityPolicy(
            round_spend_unit=self.integrity_round_spend_unit,
            round_spend_ratio=self.integrity_round_spend_ratio,
            placeholder_prefixes=self.placeholder_prefixes,
            high_cpa_warning=self.high_cpa_warning,
        )

    def normalizer_policy(self) -> NormalizerPolicy:
        return NormalizerPolicy(cpa_mismatch_tolerance=self.cpa_mismatch_tolerance)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
