"""
Configuration management for imagetarget.

Provides dataclass settings for every compilation stage, loaded from JSON
files and overridable through environment variables.
"""

import json
import os
from dataclasses import dataclass, field, asdict, fields, is_dataclass
from pathlib import Path
from typing import Any

from imagetarget.core.errors import ConfigurationError


@dataclass
class PyramidSettings:
    """Scale pyramid settings."""
    min_image_pixel_size: int = 100
    scale_step: float = 2.0 ** (1.0 / 3.0)
    tracking_sizes: list[int] = field(default_factory=lambda: [256, 128])


@dataclass
class DetectorSettings:
    """Difference-of-Gaussians detector settings."""
    scales_per_octave: int = 3
    base_sigma: float = 1.6
    contrast_threshold: float = 0.01
    max_features: int = 300
    min_octave_size: int = 16
    orientation_radius: int = 7
    descriptor_patch_size: int = 31


@dataclass
class ClusterSettings:
    """Hierarchical k-medoids settings."""
    num_centers: int = 8
    min_features_per_node: int = 16
    num_hypotheses: int = 64
    seed: int = 1234


@dataclass
class TrackingSettings:
    """Shi-Tomasi tracking point extraction settings."""
    max_points: int = 100
    quality_level: float = 0.01
    min_distance: int = 8
    block_size: int = 7


@dataclass
class FilterSettings:
    """One-euro filter defaults, timestamps in milliseconds."""
    min_cutoff: float = 0.001
    beta: float = 1000.0
    d_cutoff: float = 0.001


@dataclass
class Config:
    """
    Main configuration container.

    Example:
        config = Config.load("imagetarget.json")
        compiler = ImageTargetCompiler(config=config)
    """
    pyramid: PyramidSettings = field(default_factory=PyramidSettings)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    clustering: ClusterSettings = field(default_factory=ClusterSettings)
    tracking: TrackingSettings = field(default_factory=TrackingSettings)
    filter: FilterSettings = field(default_factory=FilterSettings)
    yield_interval: int = 3
    luminance_backend: str = "numpy"

    @classmethod
    def load(cls, path: str | Path) -> "Config":
        """Load configuration from a JSON file."""
        return load_config(path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a Config from a (possibly partial) dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration must be a JSON object, got {type(data).__name__}"
            )
        config = cls()
        for f in fields(cls):
            if f.name not in data:
                continue
            current = getattr(config, f.name)
            if is_dataclass(current):
                section = data[f.name] or {}
                if not isinstance(section, dict):
                    raise ConfigurationError(
                        f"Section '{f.name}' must be an object, got {type(section).__name__}"
                    )
                known = {sf.name for sf in fields(current)}
                unknown = set(section) - known
                if unknown:
                    raise ConfigurationError(
                        f"Unknown keys in '{f.name}' section: {sorted(unknown)}"
                    )
                setattr(config, f.name, type(current)(**{**asdict(current), **section}))
            else:
                setattr(config, f.name, data[f.name])
        return config

    def save(self, path: str | Path) -> None:
        """Save configuration to a JSON file."""
        save_config(self, path)

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def validate(self) -> "Config":
        """
        Check value ranges.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: If a value is out of range
        """
        from imagetarget.processing.color import get_backend

        get_backend(self.luminance_backend)
        try:
            checks = [
                (self.yield_interval >= 0, "yield_interval must be >= 0"),
                (self.pyramid.min_image_pixel_size > 0, "pyramid.min_image_pixel_size must be > 0"),
                (self.pyramid.scale_step > 1.0, "pyramid.scale_step must be > 1"),
                (all(s > 0 for s in self.pyramid.tracking_sizes),
                 "pyramid.tracking_sizes must be positive"),
                (self.detector.scales_per_octave > 0, "detector.scales_per_octave must be > 0"),
                (self.detector.base_sigma > 0, "detector.base_sigma must be > 0"),
                (self.detector.max_features > 0, "detector.max_features must be > 0"),
                (self.detector.min_octave_size >= 4, "detector.min_octave_size must be >= 4"),
                (self.clustering.num_centers > 1, "clustering.num_centers must be > 1"),
                (self.clustering.num_hypotheses > 0, "clustering.num_hypotheses must be > 0"),
                (self.tracking.max_points > 0, "tracking.max_points must be > 0"),
                (self.filter.min_cutoff > 0, "filter.min_cutoff must be > 0"),
                (self.filter.beta >= 0, "filter.beta must be >= 0"),
                (self.filter.d_cutoff > 0, "filter.d_cutoff must be > 0"),
            ]
        except TypeError as e:
            raise ConfigurationError(f"Configuration value has the wrong type: {e}") from e
        for ok, message in checks:
            if not ok:
                raise ConfigurationError(message)
        return self


def load_config(path: str | Path) -> Config:
    """
    Load configuration from a JSON file.

    Missing sections and keys keep their defaults.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Parsed Config object

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ConfigurationError: If the file is not valid JSON or has the wrong layout
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    return Config.from_dict(data)


def save_config(config: Config, path: str | Path) -> None:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration object to save
        path: Output path for the JSON file
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def create_example_config(path: str | Path = "imagetarget.json") -> Config:
    """Write a configuration file holding every default value."""
    config = Config()
    config.save(path)
    print(f"Created example configuration: {path}")
    return config


def get_env_config(prefix: str = "IMAGETARGET_", env: dict[str, str] | None = None) -> dict[str, str]:
    """
    Get configuration from environment variables.

    All environment variables starting with the prefix will be included.
    Variable names are converted to lowercase with the prefix removed.

    Example:
        IMAGETARGET_DETECTOR__MAX_FEATURES=200 -> {"detector__max_features": "200"}
    """
    env = os.environ if env is None else env
    config = {}
    for key, value in env.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            config[config_key] = value
    return config


def _coerce(value: str, default: Any) -> Any:
    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, list):
        return [int(v) for v in value.split(",") if v.strip()]
    return value


def apply_env_overrides(
    config: Config,
    env: dict[str, str] | None = None,
    prefix: str = "IMAGETARGET_",
) -> Config:
    """
    Apply environment overrides to a config in place.

    ``IMAGETARGET_SECTION__FIELD`` sets a field of a settings section,
    ``IMAGETARGET_FIELD`` sets a top-level field.

    Raises:
        ConfigurationError: If a variable names an unknown setting or
            holds a value of the wrong type
    """
    for key, value in get_env_config(prefix, env).items():
        section_name, _, field_name = key.rpartition("__")
        target = getattr(config, section_name, None) if section_name else config
        if target is None or not hasattr(target, field_name) or (
            not section_name and is_dataclass(getattr(target, field_name))
        ):
            raise ConfigurationError(f"Unknown configuration variable: {prefix}{key.upper()}")
        try:
            setattr(target, field_name, _coerce(value, getattr(target, field_name)))
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for {prefix}{key.upper()}: {value!r}"
            ) from e
    return config
