"""
SmartSupply Replenishment Engine
Centralized Configuration Management

Configuration is handled with Pydantic settings: every section can be
overridden from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Replenishment calculation defaults"""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    default_weeks_to_analyze: int = Field(default=8, ge=2, le=20, description="Weeks of history analysed")
    default_periods_divisor: int = Field(default=4, ge=1, le=52, description="Divisor for the weekly average")
    target_coverage_weeks: float = Field(default=4.0, gt=0, description="Weeks of demand the ideal stock must cover")
    week_start_day: int = Field(default=0, ge=0, le=6, description="First day of a sales week (0 = Monday)")
    window_policy: str = Field(
        default="calendar",
        description="calendar: weeks aligned to week_start_day; rolling: 7-day windows ending on the anchor",
    )
    decimal_separator: str = Field(
        default="auto",
        description="Decimal separator of numeric text: auto, '.' or ','",
    )
    date_formats: List[str] = Field(
        default=[
            "%Y-%m-%d",
            "%Y-%m-%d %H:%M:%S",
            "%Y-%m-%dT%H:%M:%S",
            "%d/%m/%Y",
            "%d/%m/%Y %H:%M:%S",
            "%d/%m/%Y %H:%M",
            "%d-%m-%Y",
            "%d/%m/%y",
            "%Y/%m/%d",
        ],
        description="Accepted text date formats, tried in order",
    )
    excel_sheet: int = Field(default=0, ge=0, description="Worksheet index read from Excel workbooks")

    @field_validator("window_policy")
    @classmethod
    def validate_window_policy(cls, v: str) -> str:
        allowed = ["calendar", "rolling"]
        if v.lower() not in allowed:
            raise ValueError(f"Window policy must be one of: {allowed}")
        return v.lower()

    @field_validator("decimal_separator")
    @classmethod
    def validate_decimal_separator(cls, v: str) -> str:
        allowed = ["auto", ".", ","]
        if v.lower() not in allowed:
            raise ValueError(f"Decimal separator must be one of: {allowed}")
        return v.lower()


class ColumnSettings(BaseSettings):
    """Header aliases used to locate columns in uploaded files"""

    model_config = SettingsConfigDict(env_prefix="COLUMNS_")

    product_id: List[str] = Field(
        default=["ID", "SKU", "Codigo", "Codigo Producto", "Product ID", "Product Code", "Item"],
        description="Product identifier headers",
    )
    product_name: List[str] = Field(
        default=["Nombre", "Name", "Producto", "Descripcion", "Product", "Product Name", "Description"],
        description="Product name headers",
    )
    date: List[str] = Field(
        default=["Fecha", "Date", "Fecha Venta", "Sale Date", "Transaction Date"],
        description="Transaction date headers",
    )
    quantity: List[str] = Field(
        default=["Cantidad", "Quantity", "Qty", "Unidades", "Units", "Units Sold"],
        description="Quantity sold headers",
    )
    stock: List[str] = Field(
        default=["Stock", "Stock Actual", "Current Stock", "On Hand", "Existencia"],
        description="Optional stock-on-hand headers",
    )
    fixed_ideal_stock: List[str] = Field(
        default=["Stock Fijo", "Stock Ideal", "Fixed Ideal Stock", "Fixed Stock", "Ideal Stock"],
        description="Fixed ideal stock headers in the rules file",
    )


class AssistantSettings(BaseSettings):
    """Conversational assistant (AWS Bedrock) configuration"""

    model_config = SettingsConfigDict(env_prefix="ASSISTANT_")

    enabled: bool = Field(default=True, description="Enable the results assistant")
    model_id: str = Field(default="us.amazon.nova-pro-v1:0", description="Bedrock model or inference profile")
    region_name: str = Field(default="us-east-1", description="AWS region of the Bedrock runtime")
    max_tokens: int = Field(default=1500, description="Maximum tokens per reply")
    temperature: float = Field(default=0.7, description="Sampling temperature")
    context_limit: int = Field(default=20, ge=1, description="Results shared with the assistant")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

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
    app_name: str = Field(default="smartsupply", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    engine: EngineSettings = Field(default_factory=EngineSettings)
    columns: ColumnSettings = Field(default_factory=ColumnSettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
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
