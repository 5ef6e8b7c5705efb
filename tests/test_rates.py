import math

import pytest

from markovkmc.constants import PRIOR_NU, TINY
from markovkmc.elements import Connection, SymmLabelPair
from markovkmc.rates import RateModel
from markovkmc.records import Transition
from markovkmc.symmetry import PointShiftSymmetry


def _model():
    model = RateModel(300.0, 300.0, 600.0, 4)
    model.add_vertex((1, 11), 0.0)
    model.add_vertex((2, 22), 0.2)
    return model


def _with_connection(nu=None):
    model = _model()
    model.add_edge(SymmLabelPair(1, 2))
    conn = Connection(saddle_e=0.5, energies=[0.0, 0.5, 0.2], dx=1.0, ftol=0.01)
    if nu is not None:
        conn.nu = nu
    model.state_edges[SymmLabelPair(1, 2)].connections[SymmLabelPair(11, 22)] = conn
    return model, conn


def test_allow_allocation_missing_vertex():
    model = _model()
    assert model.allow_allocation(99) is False
    assert model.allow_allocation(1) is True


def test_allow_allocation_cluster_threshold():
    model = _model()
    model.cluster_thresh = 5
    model.state_vertices[1].clusters = 10
    assert model.allow_allocation(1) is False
    model.state_vertices[1].clusters = 5
    assert model.allow_allocation(1) is True


def test_allow_allocation_dephasing():
    model = _model()
    vertex = model.state_vertices[1]
    vertex.overhead = 10
    vertex.duration = 0
    assert model.allow_allocation(1) is False
    vertex.duration = 3
    assert model.allow_allocation(1) is True


def test_bayes_empty_uses_inverse_time():
    model = _model()
    time = 4.0
    ku, kuvar, min_k, tot_k = model.bayes_ku_kuvar([], time)
    assert ku == pytest.approx(1.0 / time)
    assert kuvar == pytest.approx(1.0 / time**2)
    assert min_k == model.max_ku
    assert tot_k == 0.0


def test_bayes_single_rate():
    model = _model()
    ku, kuvar, min_k, tot_k = model.bayes_ku_kuvar([(0.05, 1.0)], 10.0)
    assert tot_k == 0.05
    assert min_k == 0.05
    assert ku == pytest.approx(0.18)
    assert kuvar > 0.0


def test_bayes_independent_of_order():
    model = _model()
    rates = [(0.05, 3.0), (0.01, 1.0), (0.2, 2.0)]
    first = model.bayes_ku_kuvar(rates, 7.0)
    second = model.bayes_ku_kuvar(list(reversed(rates)), 7.0)
    assert first == pytest.approx(second)


def test_calculate_rates_missing_edge():
    model = _model()
    kf, kb = model.calculate_rates(SymmLabelPair(1, 2))
    assert kf.target_k_fp == (0.0, -1.0)
    assert kb.tad_k_fp == [(0.0, -1.0)] * len(model.tad_t)


def test_calculate_rates_barrier_ordering():
    model, conn = _with_connection()
    kf, kb = model.calculate_rates(SymmLabelPair(1, 2))
    assert conn.nu == pytest.approx((1.0, 1.0))
    # higher barrier out of state 1 than out of state 2
    assert 0.0 < kf.target_k_fp[0] < kb.target_k_fp[0]
    rates = [k for k, _ in kf.tad_k_fp]
    assert rates == sorted(rates)
    assert rates[0] < rates[-1]


def test_calculate_rates_same_for_either_direction():
    model, _ = _with_connection()
    kf, kb = model.calculate_rates(SymmLabelPair(1, 2))
    rf, rb = model.calculate_rates(SymmLabelPair(2, 1))
    assert kf.target_k_fp[0] == pytest.approx(rf.target_k_fp[0])
    assert kb.target_k_fp[0] == pytest.approx(rb.target_k_fp[0])


def test_calculate_rates_small_displacement_resets_saddle():
    model, conn = _with_connection()
    conn.dx = 0.1
    model.calculate_rates(SymmLabelPair(1, 2))
    assert conn.saddle_e == pytest.approx(0.2 + 0.05)


def test_calculate_rates_disallowed_state():
    model, _ = _with_connection()
    model.cluster_thresh = 1
    model.state_vertices[2].clusters = 3
    kf, kb = model.calculate_rates(SymmLabelPair(1, 2))
    assert kf.target_k_fp == (0.0, -1.0)
    assert kb.target_k_fp == (0.0, -1.0)


def test_unknown_rate_missing_vertex():
    model = _model()
    ku = model.unknown_rate(42)
    assert ku.unknown_rate == TINY
    assert ku.observed_rate == 10.0
    assert ku.optimal_temperature == model.tad_t[0]


def test_unknown_rate_without_rates():
    model = _model()
    ku = model.unknown_rate(1)
    vertex = model.state_vertices[1]
    assert vertex.target_state_time == pytest.approx(vertex.state_time(model.target_t))
    assert ku.unknown_rate == model.max_ku
    assert ku.unknown_variance == pytest.approx(model.max_ku**2)
    assert ku.observed_rate == 0.0
    assert ku.optimal_temperature == model.tad_t[-1]
    assert ku.optimal_temperature_index == len(model.tad_t) - 1


def test_unknown_rate_with_rates():
    model, _ = _with_connection()
    kf, kb = model.calculate_rates(SymmLabelPair(1, 2))
    model.rates = {1: {2: kf}, 2: {1: kb}}
    ku = model.unknown_rate(1)
    assert ku.unknown_rate > 0.0
    assert ku.observed_rate == pytest.approx(kf.target_k_fp[0])
    assert ku.optimal_temperature_index == 0
    assert model.tad_t[ku.optimal_temperature_index] == ku.optimal_temperature
    assert math.isfinite(ku.unknown_variance)


def test_model_edge_params_missing_edge():
    model = _model()
    assert model.model_edge_params(SymmLabelPair(1, 2)) == []


def test_model_edge_params_values():
    model, _ = _with_connection(nu=(3.0, 4.0))
    result = model.model_edge_params(SymmLabelPair(1, 2))
    assert len(result) == 1
    slab, (params, op) = result[0]
    assert slab.ns() == (11, 22)
    assert params[0] == pytest.approx(0.5)
    assert params[1] == pytest.approx(0.5 - 0.2)
    assert params[2:4] == (3.0, 4.0)
    assert params[4] == 1.0
    assert params[5] == 0.01
    assert op.valid is False


def test_model_edge_params_reversed_query_swaps_labels():
    model, _ = _with_connection(nu=(3.0, 4.0))
    forward = model.model_edge_params(SymmLabelPair(1, 2))
    backward = model.model_edge_params(SymmLabelPair(2, 1))
    assert backward[0][0].ns() == (22, 11)
    assert backward[0][1][0][:2] == pytest.approx(forward[0][1][0][:2])


def test_model_edge_params_small_prefactor_uses_prior():
    model, _ = _with_connection(nu=(1.0e-6, 5.0))
    (_, (params, _)), = model.model_edge_params(SymmLabelPair(1, 2))
    assert params[2] == PRIOR_NU
    assert params[3] == 5.0


def test_model_edge_params_self_transition_symmetry():
    model = _model()
    model.add_edge(SymmLabelPair(1, 1))
    sym = PointShiftSymmetry.from_operation(7, shift=[0.5, 0.0, 0.0])
    conn = Connection(
        saddle_e=0.4,
        energies=[0.0, 0.4, 0.0],
        dx=1.0,
        self_transitions=[(Transition((1, 11), (1, 12)), sym)],
    )
    model.state_edges[SymmLabelPair(1, 1)].connections[SymmLabelPair(11, 12)] = conn
    (_, (_, op)), = model.model_edge_params(SymmLabelPair(1, 1))
    assert op.valid is True
    assert op.operation == 7
    assert list(op.shift) == [0.5, 0.0, 0.0]


def test_model_edge_params_pending_estimate():
    model = _model()
    model.sim_conn = True
    model.add_edge(SymmLabelPair(1, 2))
    model.state_edges[SymmLabelPair(1, 2)].pending_nebs.add(SymmLabelPair(11, 22))
    (slab, (params, op)), = model.model_edge_params(SymmLabelPair(1, 2))
    assert slab.ns() == (11, 22)
    assert params[2] == -1.0 and params[3] == -1.0
    assert params[4] == 10.0
    assert params[5] == 100.0
    assert params[0] - params[1] == pytest.approx(0.2)
    assert op.valid is False