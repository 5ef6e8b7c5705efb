"""Cubic point-group operations combined with a translation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import total_ordering

import numpy as np

from .constants import N_OPERATIONS, NDIM

_IDENTITY = np.eye(NDIM)


def transform_matrix(op: int) -> np.ndarray:
    """Return the matrix of cubic symmetry operation ``op``.

    ``op = 6R + P`` with R selecting one of eight reflections and P one of
    six axis permutations. Out-of-range operations give the identity.
    """
    if op >= N_OPERATIONS or op < 0:
        op = 0
    reflection, permutation = divmod(op, 6)
    base = np.eye(NDIM)
    n_reflect = 0 if reflection == 0 else 1 + (reflection - 1) // 3
    for i in range(n_reflect):
        axis = (reflection - 1 + i) % 3
        base[axis, axis] = -1.0
    swap_xy = permutation // 3
    result = np.zeros((NDIM, NDIM))
    for i in range(3):
        row = (1 - i % 2 + i // 2) if swap_xy else i
        result[row] = base[(i + permutation) % 3]
    return result


_MATRICES = tuple(transform_matrix(op) for op in range(N_OPERATIONS))


def find_inverse_op(op: int) -> int:
    """Return the operation whose matrix inverts that of ``op``, or -1."""
    m = transform_matrix(op)
    for candidate, n in enumerate(_MATRICES):
        if np.sum((m @ n - _IDENTITY) ** 2) < 0.001:
            return candidate
    return -1


def find_compound_op(op1: int, op2: int) -> int:
    """Return the operation equal to ``M(op1) . M(op2)``, or -1."""
    product = transform_matrix(op1) @ transform_matrix(op2)
    for candidate, m in enumerate(_MATRICES):
        if np.sum((m - product) ** 2) < 0.001:
            return candidate
    return -1


def combine_transform(one: int, two: int) -> tuple[set[int], set[int]]:
    """Find operations C with ``A.C == B`` and with ``B.C == A``.

    Returns the two sets of operations, in that order.
    """
    a = transform_matrix(one)
    b = transform_matrix(two)
    onesym: set[int] = set()
    twosym: set[int] = set()
    for op, c in enumerate(_MATRICES):
        if np.all((a @ c - b) ** 2 <= 1e-9):
            onesym.add(op)
        if np.all((b @ c - a) ** 2 <= 1e-9):
            twosym.add(op)
    return onesym, twosym


@total_ordering
@dataclass(eq=False)
class PointShiftSymmetry:
    """A point operation plus a shift; compared and hashed by operation only."""

    operation: int = N_OPERATIONS
    shift: np.ndarray = field(default_factory=lambda: np.zeros(NDIM))
    matrix: np.ndarray = field(default_factory=lambda: np.eye(NDIM))
    valid: bool = False
    index_map: dict[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.shift = np.array(self.shift, dtype=float).reshape(NDIM)
        self.matrix = np.array(self.matrix, dtype=float).reshape(NDIM, NDIM)

    @classmethod
    def from_operation(cls, operation: int, shift=None, valid: bool = True) -> PointShiftSymmetry:
        """Build a symmetry whose matrix matches ``operation``."""
        return cls(
            operation=operation,
            shift=np.zeros(NDIM) if shift is None else shift,
            matrix=transform_matrix(operation),
            valid=valid,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PointShiftSymmetry):
            return NotImplemented
        return self.operation == other.operation

    def __lt__(self, other: PointShiftSymmetry) -> bool:
        if not isinstance(other, PointShiftSymmetry):
            return NotImplemented
        return self.operation < other.operation

    def __hash__(self) -> int:
        return hash(self.operation)

    def inverse(self) -> PointShiftSymmetry:
        """Return the inverse operation, with the shift rule of the model format."""
        op = find_inverse_op(self.operation)
        matrix = transform_matrix(op)
        # each shift component is scaled by minus the row sum of the matrix
        shift = -matrix.sum(axis=1) * self.shift
        index_map = {value: key for key, value in self.index_map.items()}
        return PointShiftSymmetry(
            operation=op, shift=shift, matrix=matrix, valid=self.valid, index_map=index_map
        )

    def compound(self, other: PointShiftSymmetry) -> PointShiftSymmetry:
        """Return the effect of ``other`` applied after ``self``."""
        op = find_compound_op(other.operation, self.operation)
        matrix = transform_matrix(op)
        shift = other.matrix @ self.shift + other.shift
        index_map: dict[int, int] = {}
        if self.index_map and other.index_map:
            index_map = dict(self.index_map)
            for key, value in self.index_map.items():
                index_map[key] = other.index_map.get(value, 0)
        return PointShiftSymmetry(
            operation=op, shift=shift, matrix=matrix, valid=self.valid, index_map=index_map
        )

    def describe(self) -> str:
        """Return a human-readable summary of the operation and shift."""
        lines = [f"\nOperation {self.operation} Matrix:\n"]
        for row in self.matrix:
            cells = "".join(
                f"{'+' if int(value) >= 0 else ''}{int(value)} " for value in row
            )
            lines.append(f"\t{cells}\n")
        shift_text = "".join(f"{value:f} " for value in self.shift)
        magnitude = math.sqrt(float(np.sum(self.shift**2)))
        lines.append(f"shift: [ {shift_text}] |shift| = {magnitude:f}\n")
        return "".join(lines)