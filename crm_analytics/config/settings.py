"""
Storefront CRM Analytics
Centralized Configuration Management

Pydantic settings with environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="storefront", description="Database name")
    user: str = Field(default="storefront", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    pool_size: int = Field(default=10, description="Connection pool size")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class KafkaSettings(BaseSettings):
    """Kafka change-feed configuration"""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    enabled: bool = Field(default=False, description="Consume table-change events")
    bootstrap_servers: str = Field(default="localhost:9092", description="Kafka bootstrap servers")
    consumer_group: str = Field(default="crm-analytics", description="Consumer group ID")
    auto_offset_reset: str = Field(default="latest", description="Auto offset reset policy")
    session_timeout_ms: int = Field(default=30000, description="Session timeout")
    heartbeat_interval_ms: int = Field(default=10000, description="Heartbeat interval")
    topics_table_changes: str = Field(default="table_changes", description="Table change events topic")


class ReportingSettings(BaseSettings):
    """Dashboard aggregation and report export configuration"""

    model_config = SettingsConfigDict(env_prefix="REPORTING_")

    timezone: str = Field(default="UTC", description="Timezone used for calendar-day buckets")
    default_period_days: int = Field(default=30, ge=1, description="Default report window in days")
    top_n: int = Field(default=10, ge=1, description="Length of ranked lists")
    low_stock_threshold: int = Field(default=5, ge=0, description="Stock at or below this is low")
    recompute_debounce_seconds: float = Field(
        default=0.25, ge=0, description="Quiet time before a burst of triggers recomputes"
    )
    export_dir: str = Field(default="./exports", description="Directory for delivered exports")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown IANA zone names early"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class SecuritySettings(BaseSettings):
    """CORS configuration for the admin console"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-crm-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Where report inputs come from
    data_source: str = Field(default="database", alias="DATA_SOURCE", description="database or memory")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @field_validator("data_source")
    @classmethod
    def validate_data_source(cls, v: str) -> str:
        allowed = ["database", "memory"]
        if v.lower() not in allowed:
            raise ValueError(f"Data source must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
