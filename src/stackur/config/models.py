"""Pydantic models for configuration schema."""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


VALID_CAPABILITIES = {"CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"}


class AWSSettings(BaseModel):
    """Credentials selection for the deployment run."""

    profile: Optional[str] = Field(None, description="AWS profile name")
    region: Optional[str] = Field(None, pattern="^[a-z]{2}(-[a-z]+)+-\\d$")
    max_attempts: int = Field(1, ge=1, le=10, description="botocore attempts per API call")


class EngineSettings(BaseModel):
    """Reconciliation engine tuning."""

    poll_interval: float = Field(5.0, ge=0, description="Seconds between status polls")
    timeout: Optional[float] = Field(
        None, gt=0, description="Watchdog for each polling loop in seconds; unset waits forever"
    )
    capabilities: List[str] = Field(
        default_factory=lambda: ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]
    )
    operator: Optional[str] = Field(
        None, max_length=64, description="Prefix for change set names; defaults to the login name"
    )

    @field_validator("capabilities")
    @classmethod
    def validate_capabilities(cls, v: List[str]) -> List[str]:
        """Validate capability names against the CloudFormation set."""
        unknown = [c for c in v if c not in VALID_CAPABILITIES]
        if unknown:
            raise ValueError(f"Unknown capabilities: {', '.join(unknown)}")
        return v


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field("info", pattern="^(debug|info|warning|error)$")
    log_dir: Optional[str] = Field(".stackur/logs", description="JSON-lines log directory; null disables")


class Settings(BaseModel):
    """Top-level stackur.yaml document."""

    stack_name: Optional[str] = Field(None, min_length=1, max_length=128, pattern="^[A-Za-z][-A-Za-z0-9]*$")
    interactive: bool = False
    aws: AWSSettings = Field(default_factory=AWSSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
