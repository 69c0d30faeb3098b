"""
Shared configuration management for the rule engine.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuleEngineConfig(BaseSettings):
    """Rule engine settings, read from RULES_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RULES_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=()
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment name")
    log_level: str = Field(default="info", description="Minimum log level")
    log_json: bool = Field(default=True, description="Render logs as JSON")
    component_name: str = Field(default="rule_engine", description="Component tag added to log events")

    # Rule model
    model_path: Optional[str] = Field(default=None, description="Path of an XML rule model to load")


def get_config(**overrides) -> RuleEngineConfig:
    """Get rule engine configuration, with optional explicit overrides."""
    return RuleEngineConfig(**overrides)
