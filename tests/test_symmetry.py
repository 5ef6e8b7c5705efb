import numpy as np
import pytest

from markovkmc.constants import N_OPERATIONS
from markovkmc.symmetry import (
    PointShiftSymmetry,
    combine_transform,
    find_compound_op,
    find_inverse_op,
    transform_matrix,
)


def test_operation_zero_is_identity():
    assert np.array_equal(transform_matrix(0), np.eye(3))


@pytest.mark.parametrize("op", [N_OPERATIONS, 100, -1])
def test_out_of_range_is_identity(op):
    assert np.array_equal(transform_matrix(op), np.eye(3))


def test_all_operations_distinct_and_orthogonal():
    matrices = [transform_matrix(op) for op in range(N_OPERATIONS)]
    keys = {tuple(m.ravel()) for m in matrices}
    assert len(keys) == N_OPERATIONS
    for m in matrices:
        assert np.allclose(m @ m.T, np.eye(3))
        assert abs(abs(np.linalg.det(m)) - 1.0) < 1e-12


def test_single_reflection_x():
    m = transform_matrix(6)
    assert np.array_equal(np.diag(m), [-1.0, 1.0, 1.0])


@pytest.mark.parametrize("op", range(N_OPERATIONS))
def test_inverse_op_inverts(op):
    inv = find_inverse_op(op)
    assert 0 <= inv < N_OPERATIONS
    assert np.allclose(transform_matrix(op) @ transform_matrix(inv), np.eye(3))


def test_inverse_of_identity():
    assert find_inverse_op(0) == 0


@pytest.mark.parametrize("op1", range(0, N_OPERATIONS, 5))
@pytest.mark.parametrize("op2", range(0, N_OPERATIONS, 7))
def test_compound_matches_product(op1, op2):
    op = find_compound_op(op1, op2)
    assert np.allclose(transform_matrix(op), transform_matrix(op1) @ transform_matrix(op2))


@pytest.mark.parametrize("op", [0, 3, 17, 47])
def test_compound_with_identity_and_inverse(op):
    assert find_compound_op(op, 0) == op
    assert find_compound_op(op, find_inverse_op(op)) == 0


def test_combine_transform_same_contains_identity():
    onesym, twosym = combine_transform(11, 11)
    assert 0 in onesym
    assert 0 in twosym


def test_combine_transform_solutions_hold():
    a, b = 5, 20
    onesym, twosym = combine_transform(a, b)
    assert onesym and twosym
    for op in onesym:
        assert np.allclose(transform_matrix(a) @ transform_matrix(op), transform_matrix(b))
    for op in twosym:
        assert np.allclose(transform_matrix(b) @ transform_matrix(op), transform_matrix(a))


def test_default_symmetry():
    s = PointShiftSymmetry()
    assert s.operation == N_OPERATIONS
    assert s.valid is False
    assert np.array_equal(s.matrix, np.eye(3))
    assert np.array_equal(s.shift, np.zeros(3))


def test_equality_ordering_and_hash_by_operation():
    a = PointShiftSymmetry.from_operation(4, shift=[1.0, 0.0, 0.0])
    b = PointShiftSymmetry.from_operation(4, shift=[0.0, 2.0, 0.0])
    c = PointShiftSymmetry.from_operation(9)
    assert a == b
    assert a < c
    assert len({a, b, c}) == 2
    assert sorted([c, a])[0].operation == 4


def test_inverse_identity_negates_shift():
    s = PointShiftSymmetry.from_operation(0, shift=[1.0, 2.0, 3.0])
    inv = s.inverse()
    assert inv.operation == 0
    assert np.allclose(inv.shift, [-1.0, -2.0, -3.0])
    assert inv.valid is True


def test_inverse_operation_and_map():
    s = PointShiftSymmetry.from_operation(13)
    s.index_map = {1: 2, 3: 4}
    inv = s.inverse()
    assert inv.operation == find_inverse_op(13)
    assert np.allclose(inv.matrix, transform_matrix(inv.operation))
    assert inv.index_map == {2: 1, 4: 3}


def test_default_inverse_is_identity_operation():
    assert PointShiftSymmetry().inverse().operation == 0


def test_compound_identity_adds_shifts():
    s = PointShiftSymmetry.from_operation(0, shift=[1.0, 2.0, 3.0])
    e = PointShiftSymmetry.from_operation(0, shift=[0.5, 0.5, 0.5])
    r = s.compound(e)
    assert r.operation == 0
    assert np.allclose(r.shift, s.shift + e.shift)


def test_compound_applies_other_matrix_to_shift():
    s = PointShiftSymmetry.from_operation(0, shift=[1.0, 2.0, 3.0])
    q = PointShiftSymmetry.from_operation(7)
    r = s.compound(q)
    assert r.operation == find_compound_op(7, 0)
    assert np.allclose(r.shift, transform_matrix(7) @ np.array([1.0, 2.0, 3.0]))


def test_compound_maps():
    s = PointShiftSymmetry.from_operation(0)
    s.index_map = {1: 2, 3: 4}
    q = PointShiftSymmetry.from_operation(0)
    q.index_map = {2: 5}
    r = s.compound(q)
    assert r.index_map == {1: 5, 3: 0}


def test_describe_default():
    text = PointShiftSymmetry().describe()
    assert text.startswith("\nOperation 48 Matrix:\n")
    assert "\t+1 +0 +0 \n" in text
    assert text.endswith("shift: [ 0.000000 0.000000 0.000000 ] |shift| = 0.000000\n")


def test_describe_reflection_sign():
    text = PointShiftSymmetry.from_operation(6).describe()
    assert "\t-1 +0 +0 \n" in text