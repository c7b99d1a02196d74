"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import FrozenSet, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SUPPORTED_CURRENCIES = "BTC,ETH,USDC,USDT,PYUSD,DAI,MATIC,SOL,ADA,DOT"


def _split_csv(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST set the ledger and outbound mail values.

    Environment Variables:
        SMTP_HOST / SMTP_PORT: Inbound SMTP listener bind address
        RATE_LIMIT_WINDOW_SECONDS: Admission sliding window length
        MAX_EMAILS_PER_WINDOW: Sessions allowed per origin per window
        MAX_CONNECTIONS_PER_ORIGIN: Concurrent sessions allowed per origin
        ARCHIVE_PATH / ARCHIVE_CAPACITY_BYTES: Raw message archive
        LEDGER_RPC_URL: Ledger gateway JSON-RPC endpoint
        OUTGOING_SMTP_*: Outbound notification transport
        OPERATOR_ADDRESSES: Comma-separated addresses that make mail actionable
        SUPPORTED_CURRENCIES: Comma-separated currency codes
        LOG_LEVEL / LOG_JSON: Logging configuration
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # HTTP API (inbound webhook, archive views, health)
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000

    # Inbound SMTP
    SMTP_ENABLED: bool = True
    SMTP_HOST: str = "127.0.0.1"
    SMTP_PORT: int = 2525
    SMTP_HOSTNAME: Optional[str] = None
    SMTP_BANNER: str = "PayCrypt Email Server"
    SMTP_MAX_SIZE: int = 10 * 1024 * 1024  # 10 MB

    # Admission control
    ADMISSION_BACKEND: str = "memory"  # memory | redis
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    MAX_EMAILS_PER_WINDOW: int = 100
    MAX_CONNECTIONS_PER_ORIGIN: int = 10
    REDIS_URL: str = "redis://localhost:6379/0"

    # Archive
    ARCHIVE_PATH: str = "./storage/emails"
    ARCHIVE_CAPACITY_BYTES: int = 1000 * 1024 * 1024  # 1 GB
    ARCHIVE_RECLAIM_INTERVAL_SECONDS: int = 24 * 60 * 60
    ARCHIVE_RECLAIM_IN_PROCESS: bool = True

    # Ledger
    LEDGER_BACKEND: str = "jsonrpc"  # jsonrpc | memory
    LEDGER_RPC_URL: Optional[str] = None
    LEDGER_RPC_TIMEOUT_SECONDS: float = 30.0
    LEDGER_SIGNING_KEY: Optional[str] = None
    WALLET_FACTORY_ADDRESS: Optional[str] = None
    VERIFIER_ADDRESS: Optional[str] = None
    LEDGER_VERIFICATION_KEY: str = "default-vkey"
    LEDGER_TRANSFER_PROOF: str = "0x"
    LEDGER_PUBLIC_SIGNALS: str = "0x"
    LEDGER_NATIVE_CURRENCY: str = "DOT"
    LEDGER_MEMORY_OPENING_BALANCE: Decimal = Decimal("0")
    EXPLORER_TX_URL: str = "https://blockscout-passet-hub.parity-testnet.parity.io/tx/{ref}"

    # Outbound notification mail
    OUTGOING_SMTP_HOST: str = "localhost"
    OUTGOING_SMTP_PORT: int = 587
    OUTGOING_SMTP_STARTTLS: bool = True
    OUTGOING_SMTP_USER: Optional[str] = None
    OUTGOING_SMTP_PASS: Optional[str] = None
    OUTGOING_SMTP_TIMEOUT_SECONDS: float = 30.0
    OUTGOING_EMAIL_FROM: str = "PayCrypt <pay@paycrypt.example>"
    OUTGOING_EMAIL_REPLY_TO: str = "support@paycrypt.example"

    # Intent extraction
    OPERATOR_ADDRESSES: str = "pay@paycrypt.example"
    SUPPORTED_CURRENCIES: str = DEFAULT_SUPPORTED_CURRENCIES

    # Celery (archive reclamation worker)
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    @property
    def operator_addresses(self) -> FrozenSet[str]:
        """Operator addresses, lowercased."""
        return frozenset(addr.lower() for addr in _split_csv(self.OPERATOR_ADDRESSES))

    @property
    def supported_currencies(self) -> FrozenSet[str]:
        """Supported currency codes, upper-cased."""
        return frozenset(code.upper() for code in _split_csv(self.SUPPORTED_CURRENCIES))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
