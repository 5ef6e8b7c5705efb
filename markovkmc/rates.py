"""Rate estimates on the Markov model: observed, unknown and per-edge parameters."""

from __future__ import annotations

import logging
import math
from itertools import accumulate

from .building import ModelBase
from .constants import BOLTZ, LOG_NU_MIN, MAX_BARRIER, MSD_THRESH, PRIOR_NU, TINY
from .elements import Rate, StateVertex, SymmLabelPair, UnknownRate, pairvecsort
from .symmetry import PointShiftSymmetry

_log = logging.getLogger(__name__)

EdgeParams = tuple[SymmLabelPair, tuple[tuple[float, ...], PointShiftSymmetry]]


def _div(a: float, b: float) -> float:
    """Floating point division that follows IEEE rules for a zero divisor."""
    if b != 0.0:
        return a / b
    if a == 0.0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


def _fold(pair: tuple[float, float], rate: float, fpt: float) -> tuple[float, float]:
    """Add a rate and keep the smallest first passage time."""
    current = pair[1]
    best = fpt if (current < 0.0 or current > fpt) else current
    return (pair[0] + rate, best)


class RateModel(ModelBase):
    """Markov model able to estimate observed and unknown escape rates."""

    def allow_allocation(self, label: int) -> bool:
        """Whether simulation effort may be spent on state ``label``."""
        vertex = self.state_vertices.get(label)
        if vertex is None:
            _log.debug("suppressing allocation to %s: not found", label)
            return False
        if self.cluster_thresh > 0 and vertex.clusters > self.cluster_thresh:
            _log.debug("suppressing allocation to %s: too many clusters", label)
            return False
        if self.dephase_thresh > 0.0:
            alpha = self.dephase_thresh / max(TINY, 1.0 - self.dephase_thresh)
            if vertex.overhead >= 5 and vertex.duration < alpha * vertex.overhead:
                _log.debug("suppressing allocation to %s: failed dephasing threshold", label)
                return False
        return True

    def _prefactor(
        self, vertex: StateVertex, barrier: float, prior: float, count: float, floor: float
    ) -> float:
        """Bayesian estimate of an attempt frequency from time spent and jumps seen."""
        tau = 0.0
        for temp, elapsed in sorted(vertex.elapsed_time.items()):
            term = elapsed * _exp(_div(-min(barrier, MAX_BARRIER) / BOLTZ, float(temp)))
            if not math.isnan(term):
                tau += term
        tau = 1.0 - _div(tau * prior, self.prefactor_count_thresh)
        n_term = _div(4.0 * count, self.prefactor_count_thresh)
        nu = 0.5 * (tau + math.sqrt(tau * tau + n_term))
        if math.isnan(nu) or nu < floor:
            nu = PRIOR_NU
        return nu

    @staticmethod
    def _jump(nu: float, barrier: float, fpt: float, fpt_t: float, temp: float) -> tuple[float, float]:
        b = min(barrier, MAX_BARRIER)
        rate = nu * _exp(_div(-b / BOLTZ, temp))
        if math.isnan(rate):
            _log.debug("rate is NaN, likely an unconverged NEB; using 0.5 eV")
            rate = 10.0 * _exp(_div(-0.5 / BOLTZ, temp))
        passage = fpt * _exp(b / BOLTZ * (_div(1.0, temp) - _div(1.0, fpt_t)))
        if math.isnan(passage):
            passage = _div(1.0, rate)
        return rate, passage

    def calculate_rates(self, edge_labels: SymmLabelPair) -> tuple[Rate, Rate]:
        """Return the forward and backward rates of an edge at all temperatures."""
        kf, kb = Rate(), Rate()
        kf.reset(len(self.tad_t))
        kb.reset(len(self.tad_t))

        allowed = self.allow_allocation(edge_labels.first) and self.allow_allocation(
            edge_labels.second
        )
        if not allowed and not self.include_shallow_states:
            return kf, kb

        initial = self.state_vertices.get(edge_labels.first)
        final = self.state_vertices.get(edge_labels.second)
        edge = self.state_edges.get(edge_labels)
        if edge is None or initial is None or final is None:
            return kf, kb

        forwards = edge_labels.first == edge.labels.first
        out_rate, back_rate = (kf, kb) if forwards else (kb, kf)

        _log.debug(
            "making rates: %d (%d pending)", len(edge.connections), len(edge.pending_nebs)
        )
        if not edge.connections and not edge.pending_nebs:
            return kf, kb

        pending_de = self.pneb_prior
        max_e = max(initial.energy, final.energy)
        symmetric = edge_labels.first == edge_labels.second

        for key in sorted(edge.connections):
            conn = edge.connections[key]
            conn.nu = conn.priornu
            if conn.dx < MSD_THRESH:
                _log.debug("connection very small: dX=%s; setting dE=0.05", conn.dx)
                conn.saddle_e = max_e + 0.05
            saddle = min(MAX_BARRIER + max_e, conn.saddle_e)
            de_f = saddle - initial.energy
            de_b = saddle - final.energy
            pending_de = min(pending_de, min(de_f, de_b))

            if symmetric:
                nu = self._prefactor(
                    initial, de_f, conn.priornu[0], conn.counts[0] + conn.counts[1], 1.0e-9
                )
                conn.nu = (nu, nu)
            else:
                conn.nu = (
                    self._prefactor(initial, de_f, conn.priornu[0], conn.counts[0], 1.0e-4),
                    self._prefactor(final, de_b, conn.priornu[1], conn.counts[1], 1.0e-4),
                )
            _log.debug("prefactors: %s barriers: %s %s", conn.nu, de_f, de_b)

            out_rate.target_k_fp = _fold(
                out_rate.target_k_fp,
                *self._jump(conn.nu[0], de_f, conn.fpt[0], conn.fpt_temperature[0], self.target_t),
            )
            back_rate.target_k_fp = _fold(
                back_rate.target_k_fp,
                *self._jump(conn.nu[1], de_b, conn.fpt[1], conn.fpt_temperature[1], self.target_t),
            )
            out_rate.tad_k_fp = [
                _fold(pair, *self._jump(conn.nu[0], de_f, conn.fpt[0], conn.fpt_temperature[0], temp))
                for pair, temp in zip(out_rate.tad_k_fp, self.tad_t)
            ]
            back_rate.tad_k_fp = [
                _fold(pair, *self._jump(conn.nu[1], de_b, conn.fpt[1], conn.fpt_temperature[1], temp))
                for pair, temp in zip(back_rate.tad_k_fp, self.tad_t)
            ]

        # estimate a requested but unreturned NEB from the lowest barrier seen
        if self.sim_conn and edge.pending_nebs:
            de_f = pending_de + max_e - initial.energy
            de_b = pending_de + max_e - final.energy
            out_rate.tad_k_fp = [
                _fold(pair, _exp(_div(-de_f / BOLTZ, t)), _exp(_div(de_f / BOLTZ, t)))
                for pair, t in zip(out_rate.tad_k_fp, self.tad_t)
            ]
            back_rate.tad_k_fp = [
                _fold(pair, _exp(_div(-de_b / BOLTZ, t)), _exp(_div(de_b / BOLTZ, t)))
                for pair, t in zip(back_rate.tad_k_fp, self.tad_t)
            ]
            out_rate.target_k_fp = out_rate.tad_k_fp[0]
            back_rate.target_k_fp = back_rate.tad_k_fp[0]

        return kf, kb

    def bayes_ku_kuvar(
        self, k_fp: list[tuple[float, float]], time: float
    ) -> tuple[float, float, float, float]:
        """Bayesian mean and variance of the unknown rate after ``time``.

        Returns ``(ku, kuvar, min_k, tot_k)``: the mean and variance of the
        unknown rate, the smallest rate and the total observed rate.
        """
        min_k = self.max_ku
        tot_k = 0.0
        for rate, _ in k_fp:
            min_k = min(min_k, rate)
            tot_k += rate

        sum_kobs = []
        for index in pairvecsort(k_fp):
            pivot = k_fp[index][0]
            t_ko = sum(_div(rate * rate, rate + pivot) for rate, _ in k_fp)
            sum_kobs.append(tot_k - t_ko)

        if sum_kobs:
            # ascending coefficients of prod_i (x + a_i)
            coeffs = [1.0]
            for a in sum_kobs:
                coeffs = [low + a * high for low, high in zip([0.0, *coeffs], [*coeffs, 0.0])]
            nr = len(sum_kobs)
            factorials = list(accumulate(range(1, nr + 3), lambda acc, i: acc * float(i), initial=1.0))

            norm = ku = kuvar = 0.0
            tpow = 1.0
            for i, c in enumerate(coeffs):
                norm += _div(factorials[i] * c, tpow)
                ku += _div(factorials[i + 1] * c, tpow)
                kuvar += _div(factorials[i + 2] * c, tpow)
                tpow *= time
            ku = _div(ku, norm * time)
            kuvar = _div(kuvar, norm * time * time)
            kuvar -= ku * ku
        else:
            ku = _div(1.0, time)
            kuvar = _div(_div(1.0, time), time)

        if math.isnan(ku) or math.isnan(kuvar):
            ku = _div(1.0, time)
            kuvar = _div(_div(1.0, time), time)
        min_k = min(ku, min_k)
        return ku, kuvar, min_k, tot_k

    def unknown_rate(self, label: int) -> UnknownRate:
        """Estimate the rate of escape from ``label`` through unseen pathways."""
        ku = UnknownRate(
            unknown_rate=TINY,
            unknown_variance=2.0 * TINY,
            min_rate=TINY,
            observed_rate=10.0,
            optimal_temperature=self.tad_t[0],
            optimal_temperature_index=0,
            optimal_rate=TINY,
        )
        vertex = self.state_vertices.get(label)
        if vertex is None:
            _log.debug("no vertex for %s; not calculating unknown rate", label)
            return ku
        if not self.allow_allocation(label):
            _log.info("%s not calculated due to dephase or cluster limit", label)
            return ku

        vertex.target_state_time = vertex.state_time(self.target_t)
        tst = vertex.target_state_time
        emin = math.log(max(tst, 1.0)) + LOG_NU_MIN

        exits = self.rates.get(label, {})
        selfs = self.self_rates.get(label, {})

        if not exits and not selfs:
            tar_rate = min(_div(1.0, max(1.0, tst)), self.max_ku)
            ku.observed_rate = 0.0
            ku.unknown_rate = tar_rate
            ku.unknown_variance = tar_rate * tar_rate
            ku.optimal_temperature = self.tad_t[-1]
            ku.optimal_temperature_index = len(self.tad_t) - 1
            tad_time = tst * _exp(emin * (self.target_t / self.tad_t[-1] - 1.0))
            ku.optimal_rate = min(_div(1.0, max(1.0, tad_time)), self.max_ku)
            ku.min_rate = tar_rate
        else:
            exit_rates = [exits[k] for k in sorted(exits)]
            self_rates = [selfs[k] for k in sorted(selfs)]
            (
                ku.unknown_rate,
                ku.unknown_variance,
                ku.min_rate,
                ku.observed_rate,
            ) = self.bayes_ku_kuvar([r.target_k_fp for r in exit_rates], tst)

            tad_ku_kt = []
            for ii, temp in enumerate(self.tad_t):
                k_fp = [r.tad_k_fp[ii] for r in exit_rates + self_rates]
                tad_time = tst * _exp(emin * (self.target_t / temp - 1.0))
                unknown, _, _, total = self.bayes_ku_kuvar(k_fp, tad_time)
                tad_ku_kt.append((unknown, total))

            gradients = []
            max_gradient = -10.0
            for (unknown, total), temp in zip(tad_ku_kt, self.tad_t):
                gradient = ku.min_rate * unknown
                correction = (temp / self.target_t) * _exp(
                    emin * (1.0 - self.target_t / temp)
                ) * ku.unknown_variance
                correction += _div(unknown, ku.unknown_rate) * ku.unknown_variance
                if correction > 0.0 and not self.safe_opt:
                    gradient += correction
                gradient = _div(
                    gradient,
                    1.0 + self.hash_cost * total + (self.hash_cost + self.neb_cost) * unknown,
                )
                gradient *= _exp(-(unknown + total))
                if math.isnan(gradient):
                    gradient = _div(_div(1.0, tst), tst)
                    _log.debug("cost is NaN for %s at %sK; using %s", label, temp, gradient)
                gradients.append(gradient)
                max_gradient = max(max_gradient, gradient)

            best = 0
            if float(vertex.duration + vertex.overhead) >= 5.0:
                for ii in range(1, len(self.tad_t)):
                    best = ii
                    if gradients[ii] >= 0.95 * max_gradient:
                        break
            ku.optimal_temperature = self.tad_t[best]
            ku.optimal_temperature_index = best
            ku.optimal_rate = tad_ku_kt[best][0]
            ku.optimal_gradient = gradients[best]

            if ku.optimal_gradient < 0.0:
                _log.debug("negative optimal gradient for %s", label)
                ku.optimal_temperature = self.tad_t[0]
                ku.optimal_temperature_index = 0
                ku.optimal_rate = _div(1.0, tst)
                ku.optimal_gradient = _div(1.0, tst)

        if ku.unknown_rate < 0.0:
            ku.unknown_rate = TINY
        return ku

    def model_edge_params(self, edge_labels: SymmLabelPair) -> list[EdgeParams]:
        """Return, per pathway, the reference labels, six parameters and symmetry.

        The parameters are the forward and backward barriers, the forward and
        backward prefactors, the displacement and the force tolerance.
        """
        initial = self.state_vertices.get(edge_labels.first)
        final = self.state_vertices.get(edge_labels.second)
        edge = self.state_edges.get(edge_labels)
        if initial is None or final is None or edge is None:
            return []
        forwards = edge_labels.first == edge.labels.first
        return_pending = self.sim_conn and bool(edge.pending_nebs) and not edge.connections
        if not edge.connections and not self.sim_conn:
            return []

        fwd, bwd = (0, 1) if forwards else (1, 0)
        result: list[EdgeParams] = []
        max_e = max(initial.energy, final.energy) + 0.05
        for key in sorted(edge.connections):
            conn = edge.connections[key]
            saddle = max([min(max_e + MAX_BARRIER, conn.saddle_e), *conn.energies])
            params = [0.0] * 6
            params[fwd] = saddle - initial.energy
            params[bwd] = saddle - final.energy
            params[2 + fwd] = PRIOR_NU if conn.nu[0] < 1.0e-4 else conn.nu[0]
            params[2 + bwd] = PRIOR_NU if conn.nu[1] < 1.0e-4 else conn.nu[1]
            params[4] = conn.dx
            params[5] = conn.ftol
            slab = (key.first, key.second) if forwards else (key.second, key.first)
            if edge_labels.first == edge_labels.second and conn.self_transitions:
                sym = conn.self_transitions[0][1]
                op = PointShiftSymmetry(operation=sym.operation, shift=sym.shift.copy(), valid=True)
            else:
                op = PointShiftSymmetry(operation=0, valid=False)
            result.append((SymmLabelPair(*slab), (tuple(params), op)))

        if return_pending:
            max_t = self.tad_t[-1]
            pending = min(edge.pending_nebs)
            slab = (pending.first, pending.second) if forwards else (pending.second, pending.first)
            de_f = max(0.25, math.log(10.0 * initial.state_time(max_t)) * BOLTZ * max_t) + initial.energy
            de_b = max(0.25, math.log(10.0 * final.state_time(max_t)) * BOLTZ * max_t) + final.energy
            top = max(de_f, de_b)
            params = [0.0] * 6
            params[fwd] = top - initial.energy
            params[bwd] = top - final.energy
            params[2 + fwd] = -1.0
            params[2 + bwd] = -1.0
            params[4] = 10.0
            params[5] = 100.0
            result.append(
                (SymmLabelPair(*slab), (tuple(params), PointShiftSymmetry(operation=0, valid=False)))
            )
        return result