"""
Configuration — Engine settings

Config hierarchy (highest to lowest priority):
  1. Environment variables
  2. Project config (.taskchain/config.yaml)
  3. User config (~/.taskchain/config.yaml)
  4. Defaults

Environment variables:
- TASKCHAIN_PREVIEW_LENGTH: Summary characters shown in briefings (default: 100)
- TASKCHAIN_INSERT_INCREMENT: Spacing of inserted step numbers (default: 0.1)
- TASKCHAIN_REFINE_INSERTS: Retry inserts with finer spacing (default: false)
- TASKCHAIN_MAX_INSERT_PRECISION: Finest decimal places for refined inserts (default: 4)
- TASKCHAIN_SINGLE_ACTIVE: Allow only one step in progress per chain (default: true)
- TASKCHAIN_MAX_CHAINS: Store capacity, 0 = unbounded (default: 256)
- TASKCHAIN_CHAIN_TTL: Idle seconds before a chain expires, 0 = never (default: 86400)
- TASKCHAIN_METRICS_ENABLED: Collect operation metrics (default: true)
"""

import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .core.numbering import NumberingPolicy
from .core.step import as_step_number


logger = logging.getLogger(__name__)


@dataclass
class ChainConfig:
    """
    Configuration for the task chain engine.

    Loaded from YAML files and environment variables with sensible defaults.
    """

    # Briefings
    preview_length: int = 100              # Truncation of completed summaries

    # Numbering
    insert_increment: Decimal = Decimal("0.1")
    refine_insert_numbers: bool = False    # Finer spacing instead of collision
    max_insert_precision: int = 4          # Decimal places refine may reach

    # Lifecycle
    single_active_step: bool = True        # One in_progress step per chain

    # Retention
    max_chains: int = 256                  # 0 = unbounded
    chain_ttl_seconds: float = 86400.0     # 0 = never expire

    # Observability
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls, base: Optional['ChainConfig'] = None) -> 'ChainConfig':
        """
        Load configuration from environment variables.

        Args:
            base: Values to fall back on (default: built-in defaults)
        """
        base = base or cls()
        return cls(
            preview_length=_get_int_env("TASKCHAIN_PREVIEW_LENGTH", base.preview_length),
            insert_increment=_get_decimal_env("TASKCHAIN_INSERT_INCREMENT", base.insert_increment),
            refine_insert_numbers=_get_bool_env("TASKCHAIN_REFINE_INSERTS", base.refine_insert_numbers),
            max_insert_precision=_get_int_env("TASKCHAIN_MAX_INSERT_PRECISION", base.max_insert_precision),
            single_active_step=_get_bool_env("TASKCHAIN_SINGLE_ACTIVE", base.single_active_step),
            max_chains=_get_int_env("TASKCHAIN_MAX_CHAINS", base.max_chains),
            chain_ttl_seconds=_get_float_env("TASKCHAIN_CHAIN_TTL", base.chain_ttl_seconds),
            metrics_enabled=_get_bool_env("TASKCHAIN_METRICS_ENABLED", base.metrics_enabled),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if self.preview_length < 1:
            raise ValueError("TASKCHAIN_PREVIEW_LENGTH must be >= 1")
        if self.insert_increment <= 0 or self.insert_increment >= 1:
            raise ValueError("TASKCHAIN_INSERT_INCREMENT must be between 0 and 1")
        if self.max_insert_precision < 1:
            raise ValueError("TASKCHAIN_MAX_INSERT_PRECISION must be >= 1")
        if self.max_chains < 0:
            raise ValueError("TASKCHAIN_MAX_CHAINS must be >= 0")
        if self.chain_ttl_seconds < 0:
            raise ValueError("TASKCHAIN_CHAIN_TTL must be >= 0")

    def numbering(self) -> NumberingPolicy:
        """Numbering policy described by this config."""
        return NumberingPolicy(
            increment=self.insert_increment,
            refine=self.refine_insert_numbers,
            max_precision=self.max_insert_precision,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for display/logging."""
        return {
            "preview_length": self.preview_length,
            "insert_increment": str(self.insert_increment),
            "refine_insert_numbers": self.refine_insert_numbers,
            "max_insert_precision": self.max_insert_precision,
            "single_active_step": self.single_active_step,
            "max_chains": self.max_chains,
            "chain_ttl_seconds": self.chain_ttl_seconds,
            "metrics_enabled": self.metrics_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ChainConfig':
        """Create from dictionary. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "insert_increment" in values:
            values["insert_increment"] = as_step_number(values["insert_increment"])
        return cls(**values)


class ConfigManager:
    """
    Manages configuration loading and persistence.

    Hierarchy:
      1. Environment
      2. Project config (.taskchain/config.yaml)
      3. User config (~/.taskchain/config.yaml)
      4. Defaults
    """

    USER_CONFIG_DIR = Path.home() / ".taskchain"
    USER_CONFIG_FILE = USER_CONFIG_DIR / "config.yaml"
    PROJECT_CONFIG_DIR = ".taskchain"
    PROJECT_CONFIG_FILE = "config.yaml"

    def __init__(self, project_dir: Optional[Path] = None, user_config: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._user_config = Path(user_config) if user_config else self.USER_CONFIG_FILE
        self._config: Optional[ChainConfig] = None

    @property
    def project_config_path(self) -> Path:
        return self.project_dir / self.PROJECT_CONFIG_DIR / self.PROJECT_CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self._user_config

    def load(self) -> ChainConfig:
        """Load configuration from all sources."""
        if self._config is not None:
            return self._config

        config_data: Dict[str, Any] = {}

        # Layer 1: User config
        config_data.update(self._read_yaml(self.user_config_path))

        # Layer 2: Project config (higher priority)
        config_data.update(self._read_yaml(self.project_config_path))

        # Layer 3: Environment overrides
        config = ChainConfig.from_env(ChainConfig.from_dict(config_data))
        config.validate()

        self._config = config
        return self._config

    def save_project(self, config: ChainConfig) -> None:
        """Save configuration to project config file."""
        self.project_config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.project_config_path, 'w') as f:
            yaml.safe_dump(config.to_dict(), f, default_flow_style=False)

        self._config = config

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: expected a mapping", path)
            return {}
        return data


def get_config(project_dir: Optional[Path] = None) -> ChainConfig:
    """Load configuration for a project."""
    return ConfigManager(project_dir).load()


def _get_bool_env(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key, "")
    if value:
        try:
            return int(value)
        except ValueError:
            pass
    return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key, "")
    if value:
        try:
            return float(value)
        except ValueError:
            pass
    return default


def _get_decimal_env(key: str, default: Decimal) -> Decimal:
    """Get exact decimal from environment variable."""
    value = os.environ.get(key, "")
    if value:
        try:
            return as_step_number(value)
        except ValueError:
            pass
    return default
