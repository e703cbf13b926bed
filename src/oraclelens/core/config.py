# src/oraclelens/core/config.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

from oraclelens.credibility.sources import TRUSTED_DOMAINS

logger = logging.getLogger(__name__)

VerificationModeSetting = Literal["auto", "real", "simulated", "disabled"]


def _secret_value(secret: Optional[SecretStr]) -> str:
    return secret.get_secret_value() if secret else ""


class ScoringConfig(BaseModel):
    max_age_seconds: float = Field(default=300.0, gt=0)
    tolerance_percent: float = Field(default=1.0, gt=0)
    environmental_tolerance_percent: float = Field(default=5.0, gt=0)
    trusted_domains: List[str] = Field(default_factory=lambda: list(TRUSTED_DOMAINS))


class VerificationConfig(BaseModel):
    mode: VerificationModeSetting = "auto"
    timeout_seconds: float = Field(default=30.0, gt=0)
    public_base_url: str = "http://localhost:3000"
    gateway_url: str = ""
    app_id: str = ""
    app_secret: Optional[SecretStr] = None
    template_id: str = ""

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.app_id and _secret_value(self.app_secret) and self.template_id and self.gateway_url
        )


class PayloadCacheConfig(BaseModel):
    directory: Optional[str] = None
    ttl_seconds: float = Field(default=300.0, gt=0)


class FormulaConfig(BaseModel):
    catalog_path: Optional[str] = None


class LedgerConfig(BaseModel):
    enabled: bool = True
    path: str = "data/evaluations.jsonl"


class RegistryConfig(BaseModel):
    enabled: bool = False
    relay_url: str = ""
    api_key: Optional[SecretStr] = None
    contract_address: str = ""
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def is_configured(self) -> bool:
        return bool(self.enabled and self.relay_url and self.contract_address)


class PipelineConfig(BaseModel):
    max_workers: int = Field(default=4, ge=1)
    batch_workers: int = Field(default=4, ge=1)


class OracleLensConfig(BaseModel):
    """
    Main configuration model for OracleLens.
    """

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    verification: VerificationConfig = Field(
        default_factory=VerificationConfig, validate_default=True
    )
    payload_cache: PayloadCacheConfig = Field(default_factory=PayloadCacheConfig)
    formulas: FormulaConfig = Field(default_factory=FormulaConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig, validate_default=True)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @field_validator("verification", mode="before")
    @classmethod
    def load_verification_from_env(cls, v: Any) -> Dict[str, Any]:
        """Override attestation settings with environment variables if present."""
        v = _as_dict(v)

        if "ORACLELENS_VERIFICATION_MODE" in os.environ:
            v["mode"] = os.environ["ORACLELENS_VERIFICATION_MODE"].strip().lower()
        if "ORACLELENS_PUBLIC_BASE_URL" in os.environ:
            v["public_base_url"] = os.environ["ORACLELENS_PUBLIC_BASE_URL"]
        if "ORACLELENS_ATTESTATION_GATEWAY_URL" in os.environ:
            v["gateway_url"] = os.environ["ORACLELENS_ATTESTATION_GATEWAY_URL"]
        if "ORACLELENS_ATTESTATION_APP_ID" in os.environ:
            v["app_id"] = os.environ["ORACLELENS_ATTESTATION_APP_ID"]
        if "ORACLELENS_ATTESTATION_APP_SECRET" in os.environ:
            v["app_secret"] = os.environ["ORACLELENS_ATTESTATION_APP_SECRET"]
        if "ORACLELENS_ATTESTATION_TEMPLATE_ID" in os.environ:
            v["template_id"] = os.environ["ORACLELENS_ATTESTATION_TEMPLATE_ID"]

        return v

    @field_validator("registry", mode="before")
    @classmethod
    def load_registry_from_env(cls, v: Any) -> Dict[str, Any]:
        """Override registry relay settings with environment variables if present."""
        v = _as_dict(v)

        if "ORACLELENS_REGISTRY_RELAY_URL" in os.environ:
            v["relay_url"] = os.environ["ORACLELENS_REGISTRY_RELAY_URL"]
            v.setdefault("enabled", True)
        if "ORACLELENS_REGISTRY_API_KEY" in os.environ:
            v["api_key"] = os.environ["ORACLELENS_REGISTRY_API_KEY"]
        if "ORACLELENS_REGISTRY_CONTRACT_ADDRESS" in os.environ:
            v["contract_address"] = os.environ["ORACLELENS_REGISTRY_CONTRACT_ADDRESS"]

        return v


def _as_dict(v: Any) -> Dict[str, Any]:
    # Only explicitly set fields, so env defaults can still apply to the rest
    if isinstance(v, BaseModel):
        return v.model_dump(exclude_unset=True)
    if not isinstance(v, dict):
        return {}
    return dict(v)


def load_config(config_path: Optional[Union[str, Path]] = None) -> OracleLensConfig:
    """
    Load OracleLens configuration from YAML file.

    Args:
        config_path: Path to config.yaml (default: ./config/config.yaml)

    Returns:
        Validated OracleLensConfig instance.
    """
    if config_path is None:
        config_path = Path("config") / "config.yaml"
    else:
        config_path = Path(config_path)

    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {config_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
    else:
        logger.info(f"Config file not found at {config_path}, using defaults")

    # Env vars override file
    config = OracleLensConfig(**config_data)

    # Non-secret settings only
    logger.debug("OracleLens configuration loaded with settings:")
    logger.debug(f"  Verification mode: {config.verification.mode}")
    logger.debug(f"  Attestation credentials present: {config.verification.has_credentials}")
    logger.debug(f"  Ledger: enabled={config.ledger.enabled}, path={config.ledger.path}")
    logger.debug(f"  Registry relay configured: {config.registry.is_configured}")

    return config
