"""
Configuration Management

Pydantic-settings based configuration for the CalAIM portal backend.
All settings can be overridden via environment variables.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with CALAIM_ and are case-insensitive.
    Example: CALAIM_DYNAMODB_TABLE_NAME=PortalData
    """

    model_config = SettingsConfigDict(
        env_prefix="CALAIM_",
        env_file=[".env.local", ".env"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # DynamoDB Configuration
    dynamodb_table_name: str = Field(
        default="CalAIMPortal",
        description="Single DynamoDB table holding all portal documents",
    )
    dynamodb_gsi1_name: str = Field(
        default="GSI1",
        description="GSI1 index name for per-owner and collection listings",
    )
    dynamodb_gsi2_name: str = Field(
        default="GSI2",
        description="GSI2 index name for per-month visit and claim listings",
    )
    dynamodb_endpoint_url: str | None = Field(
        default=None,
        description="DynamoDB endpoint URL (for local development)",
    )

    # SES Configuration
    ses_from_address: str = Field(
        default="noreply@carehomefinders.com",
        description="From address for outbound emails",
    )
    ses_from_name: str = Field(
        default="CalAIM Pathfinder",
        description="Display name for outbound emails",
    )
    ses_configuration_set: str | None = Field(
        default=None,
        description="SES configuration set for tracking",
    )
    ses_endpoint_url: str | None = Field(
        default=None,
        description="SES endpoint URL (for local development)",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="us-west-2",
        description="AWS region",
    )

    # Application Configuration
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    portal_base_url: str = Field(
        default="https://connectcalaim.com",
        description="Public portal URL used for links in emails",
    )

    # Claim fee schedule
    visit_fee_rate: Decimal = Field(
        default=Decimal("45"),
        description="Amount paid per member visit on a claim",
    )
    gas_amount: Decimal = Field(
        default=Decimal("20"),
        description="Flat gas reimbursement per claim day when any visit exists",
    )

    # Reminder Configuration
    reminder_cooldown_days: int = Field(
        default=2,
        description="Minimum days between reminders and since the last activity",
    )
    max_reminders: int = Field(
        default=2,
        description="Maximum reminders of one kind per application",
    )

    # Auth Configuration
    auth_jwt_secret: str = Field(
        default="",
        description="Secret used to verify bearer identity tokens",
    )
    auth_jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm of bearer identity tokens",
    )
    auth_jwt_audience: str | None = Field(
        default=None,
        description="Expected audience claim, if tokens carry one",
    )
    admin_email_allowlist: list[str] = Field(
        default_factory=list,
        description="Emails always treated as super admins",
    )

    # Caspio Configuration
    caspio_base_url: str | None = Field(
        default=None,
        description="Caspio account base URL, e.g. https://c1abc123.caspio.com",
    )
    caspio_client_id: str | None = Field(
        default=None,
        description="Caspio OAuth client id",
    )
    caspio_client_secret: str | None = Field(
        default=None,
        description="Caspio OAuth client secret",
    )
    caspio_members_table: str = Field(
        default="CalAIM_tbl_Members",
        description="Caspio table holding member records",
    )
    caspio_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for a single Caspio HTTP request",
    )
    caspio_retries: int = Field(
        default=3,
        description="Retries on 5xx responses from Caspio",
    )

    @property
    def is_local(self) -> bool:
        """Detect if running in local mode."""
        return (
            self.environment == "development"
            or self.dynamodb_endpoint_url is not None
        )

    @property
    def dynamodb_config(self) -> dict:
        """DynamoDB client configuration."""
        config = {"region_name": self.aws_region}
        if self.dynamodb_endpoint_url:
            config["endpoint_url"] = self.dynamodb_endpoint_url
        return config

    @property
    def ses_config(self) -> dict:
        """SES client configuration."""
        config = {"region_name": self.aws_region}
        if self.ses_endpoint_url:
            config["endpoint_url"] = self.ses_endpoint_url
        return config

    @property
    def caspio_configured(self) -> bool:
        return bool(
            self.caspio_base_url and self.caspio_client_id and self.caspio_client_secret
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.
    Call get_settings.cache_clear() in tests after changing the environment.
    """
    return Settings()
