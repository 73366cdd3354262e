from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

import numpy as np

from ipsr.config import DEFAULT_THRESHOLD

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Fraction of samples whose normal change enters the metric.
TOP_FRACTION_DENOMINATOR: int = 1000


class ConvergenceMonitor:
    """
    Measures how far the normals moved in one iteration and decides when to stop.

    The metric of an iteration is the mean change (Euclidean distance between
    new and old normal) over the ceil(n / 1000) samples that changed the most.
    Rounds in which no sample received a vote have no metric (`None`) and do
    not count as converged.
    """

    def __init__(self, n_samples: int, threshold: float = DEFAULT_THRESHOLD, max_iterations: int | None = None) -> None:
        """
        Initialize the monitor.

        Args:
            n_samples: Size of the sample set.
            threshold: The loop stops once the metric drops below this value.
            max_iterations: Optional hard cap on the number of recorded iterations.
        """
        self.n_samples = n_samples
        self.threshold = threshold
        self.max_iterations = max_iterations
        self.retained = max(1, math.ceil(n_samples / TOP_FRACTION_DENOMINATOR))
        self.history: list[Optional[float]] = []

    @property
    def iterations(self) -> int:
        return len(self.history)

    @property
    def converged(self) -> bool:
        """True if the last recorded metric is below the threshold."""
        return bool(self.history) and self.history[-1] is not None and self.history[-1] < self.threshold

    def metric(self, squared_changes: npt.NDArray[np.float64]) -> Optional[float]:
        """
        Mean of the square roots of the largest retained squared changes.

        Args:
            squared_changes: One entry per sample that received a vote.

        Returns:
            The metric, or None if no sample received a vote.
        """
        squared_changes = np.asarray(squared_changes, dtype=np.float64)
        if squared_changes.size == 0:
            return None

        if squared_changes.size > self.retained:
            # top-k selection, order inside the top-k does not matter
            top = np.partition(squared_changes, squared_changes.size - self.retained)[-self.retained:]
        else:
            top = squared_changes
        return float(np.mean(np.sqrt(top)))

    def record(self, squared_changes: npt.NDArray[np.float64]) -> Optional[float]:
        """
        Compute and store the metric of one iteration.

        Returns:
            The metric of this iteration (None when nothing voted).
        """
        value = self.metric(squared_changes)
        self.history.append(value)
        if value is None:
            logger.warning(f"Iteration {self.iterations}: no sample received a vote, normals unchanged.")
        else:
            logger.info(f"Iteration {self.iterations}: normals variation {value:.6f}")
        return value

    def should_stop(self) -> bool:
        """True once the metric is below the threshold or the iteration cap is reached."""
        if self.converged:
            return True
        return self.max_iterations is not None and self.iterations >= self.max_iterations
