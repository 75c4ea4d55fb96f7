"""Manages the loading and validation of training configuration.

This module defines the `CRFConfig` dataclass, a small typed container for the
settings that drive training: the regularization parameter, the optimizer
budget, and the seed used to draw the starting point. The `load_config`
function reads these settings from a `config.yaml` file and fills in defaults
for anything the file leaves out.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import yaml

DEFAULT_SIGMA = 1.0
DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 1e-5
DEFAULT_SEED = 0
DEFAULT_INIT_SCALE = 1.0


@dataclass
class CRFConfig:
    """
    A typed configuration object holding all settings for CRF training.

    Attributes:
        sigma: The regularization parameter. The log-likelihood is penalized by
               sum(w^2) / (2 * sigma^2), so larger values mean weaker
               regularization. Must be strictly positive.
        max_iterations: Upper bound on the number of optimizer iterations.
        tolerance: Relative reduction of the objective below which the
                   optimizer considers itself converged.
        seed: Seed for the random starting point. Two runs with the same seed,
              corpus and templates produce the same model.
        init_scale: Standard deviation of the Gaussian starting point.
        verbose: When false, progress banners and progress bars are silenced.
        templates: Optional path to a feature template file, resolved relative
                   to the config file when loaded through `load_config`.
    """
    sigma: float = DEFAULT_SIGMA
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    seed: int = DEFAULT_SEED
    init_scale: float = DEFAULT_INIT_SCALE
    verbose: bool = True
    templates: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Checks the settings for values that would make training meaningless.

        Raises:
            ValueError: If sigma is not strictly positive, or if the iteration
                        budget or initialization scale is negative.
        """
        if not self.sigma > 0:
            raise ValueError(f"Regularization parameter sigma must be > 0, got {self.sigma}.")
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}.")
        if self.init_scale < 0:
            raise ValueError(f"init_scale must be >= 0, got {self.init_scale}.")


def load_config(path: str = "config.yaml") -> CRFConfig:
    """
    Loads and validates a YAML configuration file into a CRFConfig object.

    Only the keys below the optional top-level `training` section are read,
    so the same file can carry settings for other tools. A file without a
    `training` section is read from its root. Missing keys fall back to the
    dataclass defaults.

    Args:
        path: The path to the `config.yaml` file.

    Returns:
        A fully populated and validated `CRFConfig` object.

    Raises:
        FileNotFoundError: If the specified file cannot be found.
        ValueError: If the YAML cannot be parsed or a value is invalid.
        TypeError: If the root of the YAML file is not a dictionary.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    section = y.get("training", y)
    if not isinstance(section, dict):
        raise TypeError(f"The 'training' section of {path} must be a dictionary.")

    templates = section.get("templates")
    if templates:
        templates_path = Path(templates)
        if not templates_path.is_absolute():
            templates_path = Path(path).parent / templates_path
        templates = str(templates_path)

    try:
        return CRFConfig(
            sigma=float(section.get("sigma", DEFAULT_SIGMA)),
            max_iterations=int(section.get("max_iterations", DEFAULT_MAX_ITERATIONS)),
            tolerance=float(section.get("tolerance", DEFAULT_TOLERANCE)),
            seed=int(section.get("seed", DEFAULT_SEED)),
            init_scale=float(section.get("init_scale", DEFAULT_INIT_SCALE)),
            verbose=bool(section.get("verbose", True)),
            templates=templates,
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration in {path}: {e}")
