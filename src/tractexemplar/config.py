"""
Exemplar Configuration

Parameters controlling exemplar accumulation, endpoint convergence and
fixed-step resampling. Loadable from JSON configuration files.
"""

import json
import math
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Dict, Union

from .utils.logger import get_logger

logger = get_logger(__name__)


# Fraction of the points at each end that are pulled toward the node centre-of-mass
DEFAULT_CONVERGE_FRACTION = 0.25

# Minimum number of bisection iterations when searching for the next vertex
DEFAULT_BISECTION_ITERATIONS = 6


@dataclass
class ExemplarConfig:
    """
    Exemplar generation parameters

    Attributes:
        n_points: Number of points in the accumulation buffer of each exemplar
        converge_fraction: Fraction of points at each end blended toward the
            node centroids, in (0, 0.5]
        bisection_iterations: Minimum number of bisection iterations per vertex
        step_tolerance: Bisection continues until the bracket spans at most
            this fraction of the step size
        step_size: Default arc-length step of finalized exemplars (mm)
        n_workers: Worker threads used for concurrent accumulation
    """

    n_points: int = 100
    converge_fraction: float = DEFAULT_CONVERGE_FRACTION
    bisection_iterations: int = DEFAULT_BISECTION_ITERATIONS
    step_tolerance: float = 1e-3
    step_size: float = 1.0
    n_workers: int = 4

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Check parameter ranges, raising ValueError on the first violation"""
        if int(self.n_points) != self.n_points or self.n_points < 2:
            raise ValueError(f"n_points must be an integer >= 2, got {self.n_points}")
        if not 0.0 < self.converge_fraction <= 0.5:
            raise ValueError(
                f"converge_fraction must lie in (0, 0.5], got {self.converge_fraction}"
            )
        if self.bisection_iterations < 1:
            raise ValueError(
                f"bisection_iterations must be positive, got {self.bisection_iterations}"
            )
        if not 0.0 < self.step_tolerance < 1.0:
            raise ValueError(f"step_tolerance must lie in (0, 1), got {self.step_tolerance}")
        if not math.isfinite(self.step_size) or self.step_size <= 0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self.n_workers}")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, params: Dict) -> 'ExemplarConfig':
        """
        Build a configuration from a dictionary

        Unknown keys are ignored with a warning so that a shared pipeline
        configuration can be passed unchanged.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            logger.warning(f"Ignoring unknown exemplar parameters: {unknown}")
        return cls(**{k: v for k, v in params.items() if k in known})

    @classmethod
    def from_json(cls, config_file: Union[str, Path]) -> 'ExemplarConfig':
        """
        Load configuration from a JSON file

        Exemplar parameters may sit at the top level or under an
        "exemplar" section.
        """
        with open(config_file, 'r') as f:
            params = json.load(f)

        if 'exemplar' in params and isinstance(params['exemplar'], dict):
            params = params['exemplar']

        config = cls.from_dict(params)
        logger.info(f"Loaded exemplar configuration from {config_file}")
        return config
