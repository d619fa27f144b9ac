"""Configuration loader and validation for reconciliation settings."""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Configuration for the reconciliation store."""

    url: str = "sqlite:///treasury_recon.db"
    echo: bool = False


class ToleranceConfig(BaseModel):
    """Default tolerance window applied to newly imported statements."""

    amount: Decimal = Field(default=Decimal("0.01"), ge=0)
    days: int = Field(default=3, ge=0)


class MatchingSettings(BaseModel):
    """Scoring settings for the matching strategies."""

    fuzzy_min_confidence: float = Field(default=0.01, gt=0, lt=1)
    fuzzy_max_confidence: float = Field(default=0.99, gt=0, lt=1)
    reference_confidence: float = Field(default=0.7, gt=0, le=1)
    reference_normalize_pattern: str = "[^a-zA-Z0-9]"


class SuspenseConfig(BaseModel):
    """Settings for turning suspense lines into treasury movements."""

    channel_keywords: dict[str, str] = Field(
        default_factory=lambda: {"COMISION": "COMISION", "INTERES": "INTERES"}
    )
    default_channel: str = "AJUSTE"


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    tolerance: ToleranceConfig = Field(default_factory=ToleranceConfig)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    suspense: SuspenseConfig = Field(default_factory=SuspenseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "database": {
            "url": "sqlite:///treasury_recon.db",
            "echo": False,
        },
        "tolerance": {
            "amount": "0.01",
            "days": 3,
        },
        "matching": {
            "fuzzy_min_confidence": 0.01,
            "fuzzy_max_confidence": 0.99,
            "reference_confidence": 0.7,
            "reference_normalize_pattern": "[^a-zA-Z0-9]",
        },
        "suspense": {
            "channel_keywords": {
                "COMISION": "COMISION",
                "INTERES": "INTERES",
            },
            "default_channel": "AJUSTE",
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        config = ReconConfig(**config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if config.matching.fuzzy_min_confidence > config.matching.fuzzy_max_confidence:
        raise ConfigurationError(
            "matching.fuzzy_min_confidence must not exceed matching.fuzzy_max_confidence"
        )
    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Keyword tables are replaced wholesale so entries can be removed
            if key == "channel_keywords":
                result[key] = value
            else:
                result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Treasury bank reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
