from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from ipsr.analysis.convergence import ConvergenceMonitor
from ipsr.analysis.initializer import initialize_normals
from ipsr.analysis.projector import NormalProjector
from ipsr.analysis.spatial_index import SpatialIndex
from ipsr.config import RunConfig
from ipsr.solvers.oracle import Mesh

if TYPE_CHECKING:
    from ipsr.pre.pointcloud import Samples
    from ipsr.solvers.oracle import ReconstructionOracle

logger = logging.getLogger(__name__)


class RefinementState(Enum):
    LOADED = "loaded"
    INDEXED = "indexed"
    INITIALIZED = "initialized"
    RECONSTRUCTING = "reconstructing"
    PROJECTING = "projecting"
    CONVERGENCE_CHECK = "convergence check"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class RefinementResult:
    """
    Outcome of one refinement run.

    Attributes:
        mesh: Mesh reconstructed from the final normals (solver frame).
        iterations: Number of reconstruct/project rounds performed.
        history: Convergence metric per round, None for rounds without votes.
        converged: True if the metric dropped below the threshold before the cap.
    """
    mesh: Mesh
    iterations: int
    history: list[Optional[float]] = field(default_factory=list)
    converged: bool = False


class RefinementOrchestrator:
    """
    Drives the iterative normal estimation.

    build index -> random normals -> {reconstruct -> project -> check}* -> reconstruct
    """

    def __init__(
        self,
        oracle: ReconstructionOracle,
        config: RunConfig | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            oracle: Surface reconstruction used every iteration.
            config: Run parameters; defaults are used if omitted.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.oracle = oracle
        self.config = (config or RunConfig()).validate()
        self.state = RefinementState.LOADED
        self.index: SpatialIndex | None = None

    def _enter(self, state: RefinementState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def _reconstruct(self, samples: Samples) -> Mesh:
        mesh = self.oracle.reconstruct(samples, self.config.reconstruction)
        if mesh is None:
            logger.warning("Reconstruction returned no mesh, treating it as empty.")
            return Mesh.empty()
        return mesh

    def run(
        self,
        samples: Samples,
        callback: Callable[[int, Optional[float]], None] | None = None,
    ) -> RefinementResult:
        """
        Estimate the normals of `samples` in place and reconstruct the final mesh.

        Args:
            samples: Sample set in the solver frame. Its normals are overwritten.
            callback: Optional function called after every round with
                (iteration, metric).

        Returns:
            The final mesh and iteration statistics.
        """
        config = self.config

        # 1) Index over the fixed positions, built once
        self.index = SpatialIndex(samples.positions, workers=config.workers)
        self._enter(RefinementState.INDEXED)

        # 2) Reproducible random orientation
        rng = np.random.default_rng(config.seed)
        logger.info("Random initialization...")
        initialize_normals(samples, rng)
        self._enter(RefinementState.INITIALIZED)

        projector = NormalProjector(self.index, k=config.neighbors)
        monitor = ConvergenceMonitor(len(samples), threshold=config.threshold, max_iterations=config.iterations)

        # 3) Refinement loop
        while True:
            iteration = monitor.iterations + 1
            logger.info(f"Iter: {iteration}")

            self._enter(RefinementState.RECONSTRUCTING)
            mesh = self._reconstruct(samples)

            self._enter(RefinementState.PROJECTING)
            votes = projector.vote(mesh)
            if votes.n_triangles == 0:
                logger.warning(f"Iteration {iteration}: reconstruction has no triangular faces.")
            squared_changes = projector.apply(samples, votes)
            logger.debug(
                f"Iteration {iteration}: {votes.n_triangles} faces voted, "
                f"{squared_changes.size}/{len(samples)} samples updated."
            )

            self._enter(RefinementState.CONVERGENCE_CHECK)
            metric = monitor.record(squared_changes)
            if callback is not None:
                callback(iteration, metric)

            if monitor.should_stop():
                break

        # 4) Fresh reconstruction from the final normals
        self._enter(RefinementState.FINALIZING)
        mesh = self._reconstruct(samples)
        self._enter(RefinementState.DONE)

        if monitor.converged:
            logger.info(f"Converged after {monitor.iterations} iterations.")
        else:
            logger.info(f"Stopped at the iteration cap ({config.iterations}) without converging.")

        return RefinementResult(
            mesh=mesh,
            iterations=monitor.iterations,
            history=list(monitor.history),
            converged=monitor.converged,
        )


def refine_normals(
    samples: Samples,
    oracle: ReconstructionOracle,
    config: RunConfig | None = None,
    callback: Callable[[int, Optional[float]], None] | None = None,
) -> RefinementResult:
    """Run a full refinement with a fresh orchestrator."""
    return RefinementOrchestrator(oracle=oracle, config=config).run(samples, callback=callback)
