"""Application configuration via environment variables."""

from typing import Optional

from pydantic_settings import BaseSettings

SUPPORTED_PROVIDERS = ("swiftpay", "payhero", "mock")


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./earnspark.db"
    log_level: str = "INFO"

    payment_provider: str = "swiftpay"  # swiftpay | payhero | mock

    swiftpay_api_key: Optional[str] = None
    swiftpay_backend_url: str = "https://swiftpay-backend-uvv9.onrender.com"
    swiftpay_initiate_path: str = "/api/mpesa/stk-push-api"
    swiftpay_verify_path: str = "/api/mpesa-verification-proxy"

    payhero_base_url: str = "https://backend.payhero.co.ke"
    payhero_api_username: Optional[str] = None
    payhero_api_password: Optional[str] = None
    payhero_channel_id: Optional[int] = None

    callback_url: Optional[str] = None

    provider_timeout_s: float = 10.0  # Applied to every outbound provider call
    provider_max_retries: int = 2  # Only rate-limited initiations are retried

    default_amount: float = 125.0  # KES
    default_description: str = "Account Activation Fee"
    reference_prefix: str = "EarnSpark"
    country_code: str = "254"

    debug_diagnostics_enabled: bool = True
    admin_token: Optional[str] = None
    cors_allow_origins: list[str] = ["*"]

    mock_latency_ms: int = 100
    mock_failure_rate: float = 0.0
    mock_pending_polls: int = 2  # Status queries answered "pending" before success

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def missing_provider_config(self) -> Optional[str]:
        """Name of the payment subsystem whose credentials are absent, if any."""
        provider = self.payment_provider.lower()
        if provider == "swiftpay":
            if not self.swiftpay_api_key or not self.swiftpay_backend_url:
                return "SwiftPay"
        elif provider == "payhero":
            if not (self.payhero_api_username and self.payhero_api_password and self.payhero_channel_id):
                return "PayHero"
        elif provider != "mock":
            return f"payment provider '{self.payment_provider}'"
        return None

    def missing_database_config(self) -> Optional[str]:
        if not self.database_url:
            return "database"
        return None


def get_settings() -> Settings:
    return Settings()
