"""Configuration parsing for keyrando."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Use tomllib (Python 3.11+) with fallback to tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError as e:
        raise ImportError(
            "tomli is required for Python < 3.11. Install with: pip install tomli"
        ) from e


@dataclass
class KeyItemsConfig:
    """Weighting parameters for key item placement."""

    chain_weight: float = 3.0  # Weight scaling which forms chains of key items
    late_factor: float = 0.1  # Share of area difficulty added to key item weights
    quest_late_factor: float = 0.01  # Same, for quest item placement

    def __post_init__(self) -> None:
        """Validate weighting parameters."""
        if self.chain_weight <= 1:
            raise ValueError(f"chain_weight must be > 1, got {self.chain_weight}")
        if self.late_factor < 0:
            raise ValueError(f"late_factor must be >= 0, got {self.late_factor}")
        if self.quest_late_factor < 0:
            raise ValueError(
                f"quest_late_factor must be >= 0, got {self.quest_late_factor}"
            )


@dataclass
class PathsConfig:
    """File paths configuration."""

    annotations_file: str = "./data/annotations.yaml"
    preset_file: str | None = None
    output_dir: str = "./output"


@dataclass
class Config:
    """Main configuration container."""

    seed: int = 0
    keyitems: KeyItemsConfig = field(default_factory=KeyItemsConfig)
    # Named randomizer options, e.g. norandom or racemode
    options: dict[str, bool] = field(default_factory=dict)
    # Overrides for logic flags declared by the annotations
    logic: dict[str, bool] = field(default_factory=dict)
    paths: PathsConfig = field(default_factory=PathsConfig)

    def option(self, name: str) -> bool:
        """Return whether a named option is enabled."""
        return self.options.get(name, False)

    def logic_options(self) -> dict[str, bool]:
        """Options visible to annotation logic flags (logic overrides win)."""
        return {**self.options, **self.logic}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create Config from a dictionary (e.g., parsed TOML)."""
        run_section = data.get("run", {})
        keyitems_section = data.get("keyitems", {})
        paths_section = data.get("paths", {})

        return cls(
            seed=run_section.get("seed", 0),
            keyitems=KeyItemsConfig(
                chain_weight=keyitems_section.get("chain_weight", 3.0),
                late_factor=keyitems_section.get("late_factor", 0.1),
                quest_late_factor=keyitems_section.get("quest_late_factor", 0.01),
            ),
            options={k: bool(v) for k, v in data.get("options", {}).items()},
            logic={k: bool(v) for k, v in data.get("logic", {}).items()},
            paths=PathsConfig(
                annotations_file=paths_section.get(
                    "annotations_file", "./data/annotations.yaml"
                ),
                preset_file=paths_section.get("preset_file") or None,
                output_dir=paths_section.get("output_dir", "./output"),
            ),
        )

    @classmethod
    def from_toml(cls, path: str | Path) -> Config:
        """Load configuration from a TOML file."""
        path = Path(path)
        with path.open("rb") as f:
            data = tomllib.load(f)
        return cls.from_dict(data)


def load_config(path: str | Path) -> Config:
    """Load configuration from a TOML file.

    This is a convenience function that wraps Config.from_toml().

    Args:
        path: Path to the TOML configuration file.

    Returns:
        Parsed Config object.
    """
    return Config.from_toml(path)
