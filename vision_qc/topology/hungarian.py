"""Hungarian (Kuhn-Munkres) minimum-cost assignment.

Finds the one-to-one row/column pairing with the lowest total cost over a
possibly non-square cost matrix. Any matching strategy that needs a globally
optimal correspondence, instead of a greedy nearest-neighbour pass, can use
:func:`solve`.

Time complexity: O(n^3) for an n x n (padded) matrix.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

UNASSIGNED = -1

# Cost given to padding rows/columns
DUMMY_COST = 1e6

ZERO_EPSILON = 1e-10


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """``assignment[i]`` is the column matched to row ``i`` or ``UNASSIGNED``.

    ``converged`` is False when the iteration cap was hit; the assignment is
    then a best-effort partial matching and may be suboptimal.
    """
    assignment: List[int]
    converged: bool = True
    iterations: int = 0

    def __iter__(self):
        return iter(self.assignment)

    def __len__(self) -> int:
        return len(self.assignment)

    def __getitem__(self, index: int) -> int:
        return self.assignment[index]


def _as_matrix(cost_matrix) -> np.ndarray:
    rows = list(cost_matrix)
    if rows and any(len(r) != len(rows[0]) for r in rows):
        raise ValueError("Cost matrix rows must all have the same length")
    matrix = np.asarray(rows, dtype=np.float64)
    if matrix.size and not np.all(np.isfinite(matrix)):
        raise ValueError("Cost matrix must contain only finite values")
    return matrix


def _pad_square(matrix: np.ndarray) -> np.ndarray:
    rows, cols = matrix.shape
    size = max(rows, cols)
    padded = np.full((size, size), DUMMY_COST, dtype=np.float64)
    padded[:rows, :cols] = matrix
    return padded


def _find_uncovered_zero(cost: np.ndarray, row_covered: np.ndarray,
                         col_covered: np.ndarray) -> Optional[Tuple[int, int]]:
    mask = (np.abs(cost) < ZERO_EPSILON) & ~row_covered[:, None] & ~col_covered[None, :]
    hits = np.argwhere(mask)
    if len(hits) == 0:
        return None
    return int(hits[0][0]), int(hits[0][1])


def _munkres(cost: np.ndarray, max_iterations: Optional[int] = None) -> Tuple[np.ndarray, bool, int]:
    """Run the starred/primed-zero algorithm on a square matrix (modified in place)."""
    n = cost.shape[0]
    if max_iterations is None:
        max_iterations = n * n * 10

    # Step 1: row and column reduction
    cost -= cost.min(axis=1, keepdims=True)
    cost -= cost.min(axis=0, keepdims=True)

    starred = np.zeros((n, n), dtype=bool)
    primed = np.zeros((n, n), dtype=bool)
    row_covered = np.zeros(n, dtype=bool)
    col_covered = np.zeros(n, dtype=bool)

    # Step 2: star one independent zero per row/column
    for i in range(n):
        for j in range(n):
            if abs(cost[i, j]) < ZERO_EPSILON and not row_covered[i] and not col_covered[j]:
                starred[i, j] = True
                row_covered[i] = True
                col_covered[j] = True
    row_covered[:] = False
    col_covered[:] = False

    iterations = 0
    converged = False
    step = 3
    path_start: Optional[Tuple[int, int]] = None

    while iterations < max_iterations:
        iterations += 1

        if step == 3:
            # Cover columns holding a starred zero; n covered columns is a perfect matching
            col_covered = starred.any(axis=0)
            if int(col_covered.sum()) >= n:
                converged = True
                break
            step = 4

        elif step == 4:
            step = 6
            while True:
                zero = _find_uncovered_zero(cost, row_covered, col_covered)
                if zero is None:
                    break
                i, j = zero
                primed[i, j] = True
                star_cols = np.flatnonzero(starred[i])
                if len(star_cols):
                    row_covered[i] = True
                    col_covered[star_cols[0]] = False
                else:
                    path_start = (i, j)
                    step = 5
                    break

        elif step == 5:
            # Augment along the alternating primed/starred path
            path = [path_start]
            while True:
                col = path[-1][1]
                star_rows = np.flatnonzero(starred[:, col])
                if not len(star_rows):
                    break
                row = int(star_rows[0])
                path.append((row, col))
                prime_col = int(np.flatnonzero(primed[row])[0])
                path.append((row, prime_col))
            for r, c in path:
                starred[r, c] = not starred[r, c]
            primed[:] = False
            row_covered[:] = False
            col_covered[:] = False
            step = 3

        elif step == 6:
            # Create a new zero from the smallest uncovered value
            uncovered = cost[~row_covered][:, ~col_covered]
            min_uncovered = float(uncovered.min())
            cost[row_covered, :] += min_uncovered
            cost[:, ~col_covered] -= min_uncovered
            step = 4

    assignment = np.full(n, UNASSIGNED, dtype=int)
    rows, cols = np.nonzero(starred)
    assignment[rows] = cols
    return assignment, converged, iterations


def solve(cost_matrix: Sequence[Sequence[float]], max_iterations: Optional[int] = None) -> AssignmentResult:
    """Minimum-cost assignment of rows to columns.

    The matrix is padded to a square with ``DUMMY_COST`` entries; rows that
    end up on a padding column are reported as ``UNASSIGNED`` (this only
    happens when there are more rows than columns).

    ``max_iterations`` caps the main loop (default ``n * n * 10`` for the
    padded size ``n``). A capped run logs a warning and returns the starred
    zeros found so far with ``converged=False``.

    Raises:
        ValueError: ragged rows or non-finite costs.
    """
    matrix = _as_matrix(cost_matrix)
    if matrix.size == 0:
        return AssignmentResult(assignment=[UNASSIGNED] * matrix.shape[0] if matrix.ndim == 2 else [])

    rows, cols = matrix.shape
    padded_assignment, converged, iterations = _munkres(_pad_square(matrix), max_iterations)

    assignment = [int(j) if 0 <= j < cols else UNASSIGNED for j in padded_assignment[:rows]]
    if converged:
        logger.debug("Hungarian assignment complete: iterations=%d", iterations)
    else:
        logger.warning("Hungarian assignment hit the iteration cap (%d), matched %d/%d rows",
                       iterations, sum(1 for j in assignment if j != UNASSIGNED), rows)
    return AssignmentResult(assignment=assignment, converged=converged, iterations=iterations)


def calculate_total_cost(cost_matrix: Sequence[Sequence[float]], assignment: Sequence[int]) -> float:
    """Sum of the realised costs, ignoring unassigned rows."""
    total = 0.0
    for i, j in enumerate(assignment):
        if 0 <= j < len(cost_matrix[i]):
            total += float(cost_matrix[i][j])
    return total
