"""
Run Configuration
=================
This module holds the numeric parameters of one refinement run.

Why is this file needed?
------------------------
1. Single source of defaults: the command line, the library entry point and
   the tests all build the same `RunConfig`.
2. Fail fast: every parameter is validated before a point is loaded, so a bad
   value never produces a half-written output file.

Exports:
    RunConfig: All parameters of one run.
    BoundaryType: Boundary condition code understood by the Poisson solver.
    ConfigurationError: Raised for invalid parameter values.
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, replace
from enum import IntEnum

# Largest value accepted for integer parameters (C int range of the solver).
INT_MAX: int = 2**31 - 1

DEFAULT_ITERATIONS: int = 30
DEFAULT_POINT_WEIGHT: float = 10.0
DEFAULT_DEPTH: int = 10
DEFAULT_NEIGHBORS: int = 10
DEFAULT_THRESHOLD: float = 0.175
DEFAULT_SEED: int = 0


class ConfigurationError(ValueError):
    """Invalid run parameter."""


class BoundaryType(IntEnum):
    """Boundary condition of the implicit function, using the solver's integer codes."""
    FREE = 1
    DIRICHLET = 2
    NEUMANN = 3


@dataclass(frozen=True)
class ReconstructionParams:
    """
    Parameters forwarded unchanged to the reconstruction oracle.

    They are constant for a whole run so that two oracle calls differ only in
    the normals they receive.
    """
    depth: int = DEFAULT_DEPTH
    point_weight: float = DEFAULT_POINT_WEIGHT
    boundary: BoundaryType = BoundaryType.DIRICHLET


@dataclass(frozen=True)
class RunConfig:
    """
    Parameters of one refinement run.

    Attributes:
        iterations: Maximum number of reconstruct/project rounds.
        point_weight: Screening weight of the Poisson solver.
        depth: Maximum octree depth of the Poisson solver (also the depth of
            the sub-sampling octree).
        neighbors: Number of samples each face votes for.
        threshold: Convergence metric below which the loop stops.
        seed: Seed of the normal initializer.
        boundary: Boundary condition code passed to the solver.
        workers: Worker count for the parallel neighbor queries
            (-1 uses every core, as in scipy).
    """
    iterations: int = DEFAULT_ITERATIONS
    point_weight: float = DEFAULT_POINT_WEIGHT
    depth: int = DEFAULT_DEPTH
    neighbors: int = DEFAULT_NEIGHBORS
    threshold: float = DEFAULT_THRESHOLD
    seed: int = DEFAULT_SEED
    boundary: BoundaryType = BoundaryType.DIRICHLET
    workers: int = -1

    def validate(self) -> RunConfig:
        """
        Check every parameter and return self.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        for name in ("iterations", "depth", "neighbors"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"invalid value of {name}: {value!r} is not an integer")
            if not 0 < value < INT_MAX:
                raise ConfigurationError(f"invalid value of {name}: {value}")

        for name in ("point_weight", "threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(f"invalid value of {name}: {value!r} is not a number")
            if not math.isfinite(value):
                raise ConfigurationError(f"invalid value of {name}: {value}")

        if self.point_weight < 0.0:
            raise ConfigurationError(f"invalid value of point_weight: {self.point_weight}")
        if self.threshold <= 0.0:
            raise ConfigurationError(f"invalid value of threshold: {self.threshold}")

        if self.workers == 0 or self.workers < -1:
            raise ConfigurationError(f"invalid value of workers: {self.workers}")

        try:
            BoundaryType(self.boundary)
        except ValueError:
            raise ConfigurationError(f"invalid value of boundary: {self.boundary}") from None

        return self

    @property
    def reconstruction(self) -> ReconstructionParams:
        """The subset of parameters consumed by the reconstruction oracle."""
        return ReconstructionParams(
            depth=self.depth,
            point_weight=self.point_weight,
            boundary=BoundaryType(self.boundary),
        )

    def with_overrides(self, **changes) -> RunConfig:
        """Return a validated copy with some fields replaced. `None` values are ignored."""
        changes = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **changes).validate()
