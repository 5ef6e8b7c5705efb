"""Building blocks of the Markov model: edges, vertices, connections and rates."""

from __future__ import annotations

import math
from dataclasses import InitVar, dataclass, field
from functools import total_ordering
from typing import Any, Mapping, Sequence

from .constants import LOG_NU_MIN, MAX_BARRIER, MSD_THRESH, PRIOR_NU
from .records import LabelPair, NEBPathway, TADSegment, Transition, TransitionSymmetry
from .symmetry import PointShiftSymmetry


def _safe_exp(x: float) -> float:
    """Exponential that saturates to infinity instead of raising."""
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


@total_ordering
@dataclass(frozen=True, eq=False)
class SymmLabelPair:
    """An unordered pair of labels; equality and order ignore the direction."""

    first: int = 0
    second: int = 0

    def _key(self) -> tuple[int, int]:
        return (max(self.first, self.second), min(self.first, self.second))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymmLabelPair):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: SymmLabelPair) -> bool:
        if not isinstance(other, SymmLabelPair):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def rev(self) -> SymmLabelPair:
        """Return the pair with its members swapped."""
        return SymmLabelPair(self.second, self.first)

    def ns(self) -> LabelPair:
        """Return the directed pair as a plain tuple."""
        return (self.first, self.second)


def canon_trans(transition: Transition) -> SymmLabelPair:
    """Pair of canonical labels of a transition."""
    return SymmLabelPair(transition.first[0], transition.second[0])


def noncanon_trans(transition: Transition) -> SymmLabelPair:
    """Pair of non-canonical labels of a transition."""
    return SymmLabelPair(transition.first[1], transition.second[1])


def mapkeysort(mapping: Mapping[Any, Any]) -> list[Any]:
    """Return the keys of ``mapping`` ordered by descending value."""
    return sorted(mapping, key=mapping.__getitem__, reverse=True)


def pairvecsort(pairs: Sequence[tuple[Any, Any]], by_second: bool = True) -> list[int]:
    """Return the indices of ``pairs`` in ascending order of one member."""
    member = 1 if by_second else 0
    return sorted(range(len(pairs)), key=lambda i: pairs[i][member])


@dataclass
class NEBJob:
    """An NEB calculation to submit."""

    target_transition: Transition = field(default_factory=Transition)
    existing_pairs: list[LabelPair] = field(default_factory=list)
    initial_symmetries: set[PointShiftSymmetry] = field(default_factory=set)
    final_symmetries: set[PointShiftSymmetry] = field(default_factory=set)
    saddle: int = 0
    pairmap: bool = False


@dataclass
class TADJob:
    """A batch of TAD segments to submit from one state."""

    initial_labels: LabelPair = (0, 0)
    temperature: float = 0.0
    n_instances: int = 1
    basin_labels: dict[LabelPair, float] = field(default_factory=dict)


@dataclass
class Connection:
    """Saddle and jump information for one pathway of an edge."""

    saddle_e: float = 10.0 * MAX_BARRIER
    dx: float = 2.0 * MSD_THRESH
    dx_max: float = 2.0 * MSD_THRESH
    ftol: float = 10.0
    energies: list[float] = field(default_factory=list)
    saddle_labels: LabelPair = (0, 0)
    self_transitions: list[TransitionSymmetry] = field(default_factory=list)
    priornu: tuple[float, float] = (PRIOR_NU, PRIOR_NU)
    nu: tuple[float, float] = (PRIOR_NU, PRIOR_NU)
    fpt: tuple[float, float] = (0.0, 0.0)
    fpt_temperature: tuple[float, float] = (0.0, 0.0)
    counts: tuple[float, float] = (0.0, 0.0)

    @classmethod
    def from_pathway(cls, path: NEBPathway) -> Connection:
        """Build a connection from an NEB result."""
        conn = cls()
        conn.add_path(path)
        return conn

    def add_path(self, path: NEBPathway) -> None:
        """Take the saddle data of ``path`` if better converged; merge self transitions."""
        if path.ftol < self.ftol:
            self.saddle_e = path.saddle_e
            self.dx = path.dx
            self.dx_max = path.dx_max
            self.ftol = path.ftol
            self.energies = list(path.energies)
            self.saddle_labels = path.saddle_labels
            self.priornu = tuple(path.priornu)
        for new in path.self_transitions:
            if not any(known[0] == new[0] for known in self.self_transitions):
                self.self_transitions.append(new)

    def add_jump(self, temperature: float, fpt: float, forwards: bool) -> None:
        """Count a jump; remember the first passage time of the first one."""
        f_fwd, f_bwd = self.fpt
        t_fwd, t_bwd = self.fpt_temperature
        c_fwd, c_bwd = self.counts
        if forwards:
            if f_fwd == 0.0:
                f_fwd, t_fwd = fpt, temperature
            c_fwd += 1.0
        else:
            if f_bwd == 0.0:
                f_bwd, t_bwd = fpt, temperature
            c_bwd += 1.0
        self.fpt = (f_fwd, f_bwd)
        self.fpt_temperature = (t_fwd, t_bwd)
        self.counts = (c_fwd, c_bwd)

    def assimilate(self, other: Connection) -> None:
        """Merge an equivalent connection into this one."""
        if self.saddle_e > other.saddle_e:
            self.saddle_e = other.saddle_e
            self.saddle_labels = other.saddle_labels
            self.dx = other.dx
            self.dx_max = other.dx_max
            self.ftol = other.ftol
            self.energies = list(other.energies)
            self.priornu = other.priornu
            self.nu = other.nu

        self.counts = (self.counts[0] + other.counts[0], self.counts[1] + other.counts[1])

        fpt = list(self.fpt)
        fpt_t = list(self.fpt_temperature)
        for i in range(2):
            if (
                other.fpt[i] > 0.0
                and other.fpt_temperature[i] <= fpt_t[i]
                and other.fpt[i] < fpt[i]
            ):
                fpt[i] = other.fpt[i]
                fpt_t[i] = other.fpt_temperature[i]
        self.fpt = (fpt[0], fpt[1])
        self.fpt_temperature = (fpt_t[0], fpt_t[1])


def _pair_list(pairs) -> str:
    return "".join(f"{p.first},{p.second} " for p in sorted(pairs))


@dataclass
class StateEdge:
    """All pathways between two canonical states."""

    labels: SymmLabelPair = field(default_factory=SymmLabelPair)
    connections: dict[SymmLabelPair, Connection] = field(default_factory=dict)
    self_edge_map: dict[SymmLabelPair, tuple[SymmLabelPair, PointShiftSymmetry]] = field(
        default_factory=dict
    )
    requested_nebs: set[SymmLabelPair] = field(default_factory=set)
    completed_nebs: set[SymmLabelPair] = field(default_factory=set)
    pending_nebs: set[SymmLabelPair] = field(default_factory=set)
    requested_pms: set[SymmLabelPair] = field(default_factory=set)
    completed_pms: set[SymmLabelPair] = field(default_factory=set)
    pending_pms: set[SymmLabelPair] = field(default_factory=set)
    pm_tested_pairs: dict[SymmLabelPair, set[SymmLabelPair]] = field(default_factory=dict)
    reference: InitVar[SymmLabelPair | None] = None

    def __post_init__(self, reference: SymmLabelPair | None) -> None:
        if reference is not None:
            identity = PointShiftSymmetry(valid=True)
            self.self_edge_map.setdefault(reference, (reference, identity))

    def describe(self, seg: bool = False) -> str:
        """Return a report of the edge, with energy profiles if ``seg``."""
        first, second = self.labels.first, self.labels.second
        is_self = first == second
        parts = [f"\n Edge: {first}"]
        parts.append(" (Self Transition)\n" if is_self else f" <-> {second}\n")
        parts.append("\n   Connections:\n")
        for key, conn in sorted(self.connections.items(), key=lambda kv: kv[0]):
            if conn.dx < MSD_THRESH:
                continue
            initial_e = conn.energies[0] if conn.energies else 0.0
            final_e = conn.energies[-1] if conn.energies else 0.0
            parts.append(f"  {key.first} -> {key.second}: ")
            parts.append(f"{conn.saddle_e - initial_e:f},")
            parts.append(f"{conn.saddle_e - final_e:f} ")
            parts.append(f"dX Ftol : {conn.dx:f} {conn.ftol:f}\n")
            if is_self:
                parts.append(f"  counts: {conn.counts[0] + conn.counts[1]:f}\n")
            else:
                parts.append(f"  counts: {conn.counts[0]:f} {conn.counts[1]:f}\n")
            if seg:
                base = min([initial_e, *conn.energies])
                parts.append(f"     E[]: {base:f} + \n")
                span = conn.saddle_e - base
                for energy in conn.energies:
                    ratio = 30.0 * (energy - base) / span if span > 0.0 else 0.0
                    width = int(ratio) if math.isfinite(ratio) else 0
                    parts.append("    " + " " * max(width, 0) + f"| {energy - base:f}\n")
                if conn.self_transitions:
                    parts.append("\n Self Symmetries:\n")
                    parts.extend(sym.describe() for _, sym in conn.self_transitions)
                    parts.append("\n")
        if seg and self.self_edge_map:
            parts.append(f"\n Seen Equivalent Transitions:{len(self.self_edge_map)}\n")
        parts.append("\n   Completed NEBS: " + _pair_list(self.completed_nebs))
        parts.append("\n   Requested NEBS: " + _pair_list(self.requested_nebs))
        parts.append("\n   Pending NEBS: " + _pair_list(self.pending_nebs))
        parts.append("\n   Failed NEBS: " + _pair_list(self.requested_pms))
        parts.append("\n")
        return "".join(parts)


@dataclass
class StateVertex:
    """Statistics gathered for one canonical state."""

    reference_label: LabelPair = (0, 0)
    energy: float = 0.0
    id: int = 0
    target_state_time: float = 1.0
    duration: int = 0
    overhead: int = 0
    trials: int = 0
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    clusters: int = 0
    elapsed_time: dict[int, float] = field(default_factory=dict)
    self_symmetries: set[PointShiftSymmetry] = field(default_factory=set)
    state_isomorphisms: dict[int, PointShiftSymmetry] = field(default_factory=dict)
    basin_labels: dict[LabelPair, float] = field(default_factory=dict)
    connections: set[int] = field(default_factory=set)
    unknown_rate: list[float] = field(default_factory=list)

    def add_segment(self, seg: TADSegment) -> None:
        """Accumulate the time spent in a TAD segment."""
        self.duration += seg.duration
        tint = int(seg.temperature + 0.5)
        self.elapsed_time[tint] = self.elapsed_time.get(tint, 0.0) + seg.elapsed_time
        if self.clusters == 0:
            self.clusters = seg.initial_clusters
            self.position = tuple(seg.initial_position)

    def state_time(self, target_t: float) -> float:
        """Effective residence time at ``target_t`` from all simulated temperatures."""
        inv_t = 0.0
        time = 1.0
        for index, (temp, elapsed) in enumerate(sorted(self.elapsed_time.items(), reverse=True)):
            if index > 0:
                time *= _safe_exp((math.log(max(time, 1.0)) + LOG_NU_MIN) * (1.0 - temp * inv_t))
            time += elapsed
            inv_t = 1.0 / temp if temp else math.inf
        time *= _safe_exp((math.log(max(time, 1.0)) + LOG_NU_MIN) * (1.0 - target_t * inv_t))
        if math.isnan(time):
            time = 1.0
        return time

    def describe(self, target_t: float, eshift: float = 0.0, ku: float = 0.0) -> str:
        """Return a one-line report of the vertex."""
        time = self.state_time(target_t)
        pos = self.position
        return (
            f" {self.reference_label[0]} ({self.reference_label[1]})"
            f" Clusters: {self.clusters}, Position: [{pos[0]:f},{pos[1]:f},{pos[2]:f}],"
            f" E-Emin:{self.energy - eshift:f}eV, t:{time:f}ps, "
            f"ku:{ku:f}THz blocks:{self.duration}, overhead:{self.overhead}\n"
        )

    def update(
        self,
        label: int,
        energy: float,
        clusters: int | None = None,
        position: Sequence[float] | None = None,
        symmetries=None,
        force: bool = False,
    ) -> None:
        """Lower the energy, refresh cluster data and add self symmetries."""
        if self.energy > energy or force:
            self.energy = energy
        if clusters is not None:
            if (self.reference_label[1] == label and clusters > 0) or force:
                self.clusters = clusters
                if position is not None:
                    self.position = tuple(position)
        if symmetries:
            for sym in symmetries:
                if sym not in self.self_symmetries:
                    self.self_symmetries.add(sym)


@dataclass
class Rate:
    """Rate and first passage time at the target and at every TAD temperature."""

    target_k_fp: tuple[float, float] = (0.0, -1.0)
    tad_k_fp: list[tuple[float, float]] = field(default_factory=list)

    def reset(self, size: int) -> None:
        """Clear all rates for ``size`` TAD temperatures."""
        self.target_k_fp = (0.0, -1.0)
        self.tad_k_fp = [(0.0, -1.0)] * size


@dataclass
class UnknownRate:
    """Estimate of the rate of escape through paths not yet seen."""

    unknown_rate: float = 0.0
    unknown_variance: float = 0.0
    min_rate: float = 0.0
    observed_rate: float = 0.0
    optimal_temperature: float = 0.0
    optimal_temperature_index: int = 0
    optimal_rate: float = 0.0
    optimal_gradient: float = 0.0