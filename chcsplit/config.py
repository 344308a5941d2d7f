"""
Settings for splitting, proof reconstruction and logging.

Read from ``.chcsplit.yml`` (or ``.chcsplit.yaml``) in the working
directory.  Every key is optional; command line flags are applied on top.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


_CONFIG_NAMES = (".chcsplit.yml", ".chcsplit.yaml")


@dataclass
class SplitConfig:
    # Split the instance on its negative clauses.
    enabled: bool = True
    # Order negative clauses with the connectivity heuristic.
    sort: bool = True
    # Run the learner on each sub-instance (inference mode).
    infer: bool = True
    # Log every split step at info level, even when not verbose.
    step: bool = False


@dataclass
class ReconstructionConfig:
    timeout_ms: int = 10000
    solver_name: str = "proof_reconstruction"


@dataclass
class LoggingConfig:
    level: str = "WARNING"

    def numeric_level(self) -> int:
        level = logging.getLevelName(self.level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"unknown logging level {self.level!r}")
        return level


@dataclass
class ChcSplitConfig:
    """Top-level configuration for chcsplit."""
    split: SplitConfig = field(default_factory=SplitConfig)
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, root: Path) -> "ChcSplitConfig":
        """Load config from .chcsplit.yml, falling back to defaults."""
        for name in _CONFIG_NAMES:
            config_path = root / name
            if config_path.exists():
                return cls.from_file(config_path)
        return cls()

    @classmethod
    def from_file(cls, config_path: Path) -> "ChcSplitConfig":
        with open(config_path) as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"cannot parse {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{config_path}: expected a mapping at top level")
        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, raw: dict[str, Any]) -> "ChcSplitConfig":
        split_raw = raw.get("split", {}) or {}
        recon_raw = raw.get("reconstruction", {}) or {}
        log_raw = raw.get("logging", {}) or {}

        split = SplitConfig(
            enabled=bool(split_raw.get("enabled", True)),
            sort=bool(split_raw.get("sort", split_raw.get("split-sort", split_raw.get("split_sort", True)))),
            infer=bool(split_raw.get("infer", True)),
            step=bool(split_raw.get("step", False)),
        )

        try:
            timeout_ms = int(recon_raw.get("timeout-ms", recon_raw.get("timeout_ms", 10000)))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"reconstruction timeout must be an integer: {e}") from e

        reconstruction = ReconstructionConfig(
            timeout_ms=timeout_ms,
            solver_name=recon_raw.get("solver-name", recon_raw.get("solver_name", "proof_reconstruction")),
        )

        log = LoggingConfig(level=str(log_raw.get("level", "WARNING")))
        # Fail early on typos.
        log.numeric_level()

        return cls(split=split, reconstruction=reconstruction, logging=log)

    def to_yaml(self) -> str:
        """Serialise to YAML string."""
        lines = [
            "# .chcsplit.yml",
            "",
            "split:",
            f"  enabled: {str(self.split.enabled).lower()}",
            f"  sort: {str(self.split.sort).lower()}",
            f"  infer: {str(self.split.infer).lower()}",
            f"  step: {str(self.split.step).lower()}",
            "",
            "reconstruction:",
            f"  timeout-ms: {self.reconstruction.timeout_ms}",
            f"  solver-name: {self.reconstruction.solver_name}",
            "",
            "logging:",
            f"  level: {self.logging.level}",
            "",
        ]
        return "\n".join(lines)
