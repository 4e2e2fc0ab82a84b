"""
Configuration management for pattern-matching.

Provides a typed pydantic model and YAML loader with sensible defaults.
The hot parameters (crop height, outlier filter, match tolerance) live in
their own model so they can be replaced at runtime without touching the
rest of the configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
import yaml


# -----------------------
# Typed config structures
# -----------------------


class PatternMatchingParameters(BaseModel):
    """Parameters that can be replaced at runtime, with their accepted ranges."""

    model_config = ConfigDict(frozen=True)

    min_crop_height: float = Field(default=-1.0, ge=-20.0, le=20.0, description="Minimum crop height for the box filter")
    max_crop_height: float = Field(default=1.0, ge=-20.0, le=20.0, description="Maximum crop height for the box filter")
    outlier_filter_mean: int = Field(default=10, ge=0, le=200, description="Number of nearest neighbours for outlier rejection")
    outlier_filter_stddev: float = Field(default=1.0, ge=0.0, le=20.0, description="Standard deviation multiplier for outlier rejection")
    dilation_factor: float = Field(default=1.0, ge=0.0, le=20.0, description="Scaling of the fitness tolerance for a match")
    min_point_count: int = Field(default=10, ge=0, le=10000, description="Minimum number of aligned points for a match")

    @model_validator(mode="after")
    def _check_crop_heights(self) -> "PatternMatchingParameters":
        if self.min_crop_height > self.max_crop_height:
            raise ValueError(
                f"min_crop_height ({self.min_crop_height}) must not exceed "
                f"max_crop_height ({self.max_crop_height})"
            )
        return self


class CropConfig(BaseModel):
    min_x: float = Field(default=-10.0, description="Minimum horizontal X bound of the crop box")
    max_x: float = Field(default=10.0, description="Maximum horizontal X bound of the crop box")
    min_y: float = Field(default=-10.0, description="Minimum horizontal Y bound of the crop box")
    max_y: float = Field(default=10.0, description="Maximum horizontal Y bound of the crop box")

    @model_validator(mode="after")
    def _check_bounds(self) -> "CropConfig":
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(
                f"Crop box minimum ({self.min_x}, {self.min_y}) must not exceed "
                f"maximum ({self.max_x}, {self.max_y})"
            )
        return self


class PreprocessingConfig(BaseModel):
    demean: bool = Field(
        default=False,
        description="Subtract the scan centroid before registration (transform is reported in the original scan frame)",
    )


class DensifyConfig(BaseModel):
    enabled: bool = Field(default=True)
    scaling_factor: float = Field(default=1.0, description="Divisor applied to every reference coordinate")
    increment: float = Field(default=0.01, description="Step between consecutive offset copies")
    offset: float = Field(default=-0.02, description="Offset of the first copy")
    iterations: int = Field(default=4, ge=0, description="Copies per axis; (1 + iterations^2) layers in total")


class RasterizationConfig(BaseModel):
    enabled: bool = Field(default=False, description="Attach an occupancy image of the aligned scan to each result")
    resolution: float = Field(default=20.0, gt=0, description="Grid cells per unit length")
    width: float = Field(default=100.0, gt=0, description="Grid extent along X (units)")
    height: float = Field(default=100.0, gt=0, description="Grid extent along Y (units)")


class RegistrationConfig(BaseModel):
    max_iterations: int = Field(default=50, ge=1)
    tolerance: float = Field(default=1e-8, description="Convergence tolerance on the change in mean squared error")
    max_correspondence_distance: Optional[float] = Field(
        default=None,
        description="Maximum distance for point correspondences (None = unlimited)",
    )
    convergence_translation_epsilon: float = Field(
        default=1e-6,
        description="Minimum translation step to continue ICP iterations",
    )
    convergence_rotation_epsilon_deg: float = Field(
        default=0.01,
        description="Minimum rotation step (degrees) to continue ICP iterations",
    )
    initial_alignment: Literal["centroid", "pca", "none"] = Field(
        default="centroid",
        description="Coarse initialization applied before ICP",
    )
    fail_after_max_iterations: bool = Field(
        default=False,
        description="Report non-convergence when the iteration budget is exhausted",
    )


class EvaluationConfig(BaseModel):
    max_fitness_score: float = Field(
        default=0.01,
        ge=0.0,
        description="Fitness tolerance at dilation_factor == 1 (squared units)",
    )


class VisualizationConfig(BaseModel):
    backend: Literal["plotly", "pyvista"] = Field(default="plotly")
    sample_size: int = Field(default=50000)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    parameters: PatternMatchingParameters = Field(default_factory=PatternMatchingParameters)
    crop: CropConfig = Field(default_factory=CropConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    densify: DensifyConfig = Field(default_factory=DensifyConfig)
    rasterization: RasterizationConfig = Field(default_factory=RasterizationConfig)
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/pattern_matching/utils/config.py
    parents sequence:
      0 -> .../src/pattern_matching/utils
      1 -> .../src/pattern_matching
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Relative paths are tried as given first, then relative to the repo root.

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)
        if not cfg_path.is_absolute() and not cfg_path.exists():
            cfg_path = _project_root() / cfg_path

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}") from e


def update_parameters(
    parameters: PatternMatchingParameters,
    **changes: Any,
) -> PatternMatchingParameters:
    """
    Return a validated copy of `parameters` with `changes` applied.

    Unknown names are rejected so that a typo in a reconfigure request does
    not silently leave the old value in place.

    Raises:
        ValueError: If a name is unknown or a value is out of range.
    """
    unknown = set(changes) - set(PatternMatchingParameters.model_fields)
    if unknown:
        raise ValueError(f"Unknown pattern matching parameter(s): {sorted(unknown)}")

    merged = parameters.model_dump()
    merged.update(changes)
    try:
        return PatternMatchingParameters.model_validate(merged)
    except ValidationError as e:
        raise ValueError(f"Invalid pattern matching parameters: {e}") from e
