"""Library settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``STAS_``, nested via ``__``)
2. YAML config file (``config_path`` / ``STAS_CONFIG_PATH``)
3. Defaults defined here
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class FeeConfig(BaseSettings):
    """Fee rate and change thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="STAS_FEE__",
        case_sensitive=False,
    )

    satoshis: int = Field(default=50, ge=0, description="Satoshis charged per `bytes` unit")
    bytes: int = Field(default=1000, gt=0, description="Size unit the fee rate applies to")
    dust_threshold: int = Field(
        default=546,
        ge=0,
        description="Smallest amount the payment UTXO must keep after paying the fee",
    )


class NetworkConfig(BaseSettings):
    """Network selection."""

    model_config = SettingsConfigDict(
        env_prefix="STAS_NETWORK__",
        case_sensitive=False,
    )

    testnet: bool = False


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


class StasSettings(BaseSettings):
    """Top-level library configuration.

    Loads settings from environment variables (``STAS_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="STAS_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    config_path: str = ""

    fee: FeeConfig = Field(default_factory=FeeConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        for key, val in _load_yaml(config_path).items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct settings loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
