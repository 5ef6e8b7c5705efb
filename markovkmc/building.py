"""Growing the Markov model from TAD segments and NEB pathways."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Sequence

from .constants import BOLTZ, MAX_BARRIER, MSD_THRESH
from .elements import (
    Connection,
    Rate,
    StateEdge,
    StateVertex,
    SymmLabelPair,
    UnknownRate,
    canon_trans,
    noncanon_trans,
)
from .records import LabelPair, NEBPathway, TADSegment, Transition
from .symmetry import PointShiftSymmetry

_log = logging.getLogger(__name__)

_CONFIG_PREFIX = "Configuration.MarkovModel."
_MISSING = object()


def _identity() -> PointShiftSymmetry:
    return PointShiftSymmetry(valid=True)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0"):
        return False
    raise ValueError(f"cannot read {value!r} as a boolean")


def _lookup(config: Mapping[str, Any], key: str) -> Any:
    """Find a dotted key either stored flat or as nested mappings."""
    path = _CONFIG_PREFIX + key
    if path in config:
        return config[path]
    node: Any = config
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _get(config: Mapping[str, Any], key: str, default: Any, cast) -> Any:
    value = _lookup(config, key)
    if value is _MISSING:
        return default
    if cast is bool:
        return _to_bool(value)
    if cast is str:
        return str(value)
    if isinstance(value, str):
        value = value.strip()
    return cast(value)


class ModelBase:
    """State of the Markov model and the operations that grow it."""

    def __init__(
        self,
        target_t: float | None = None,
        min_t: float | None = None,
        max_t: float | None = None,
        n_t: int | None = None,
        prefactor_count_thresh: int = 2,
        min_barrier: float = 0.05,
    ) -> None:
        self.min_barrier = min_barrier
        self.prefactor_count_thresh = float(prefactor_count_thresh)
        self.max_ku = 0.1
        self.min_ku = 1.0e-20
        self.max_k = 10.0
        self.hash_cost = 250.0
        self.neb_cost = 1000.0
        self.target_t = 300.0
        self.target_b = 1.0 / self.target_t / BOLTZ
        self.valid_time = 0.0
        self.valid_time_sd = 0.0
        self.pneb_prior = 1.0
        self.dephase_thresh = 0.2
        self.max_id = 0
        self.rho_init_flavor = 0
        self.prediction_size = 10
        self.alloc_scheme = 0
        self.cluster_thresh = 100000
        self.tad_t: list[float] = [300.0]
        self.initial_labels: LabelPair = (0, 0)
        self.safe_opt = True
        self.sim_conn = False
        self.include_shallow_states = False
        self.lattice_constant = "None"
        self.primitive_unit_cell = "None"
        self.unit_cell = "None"
        self.super_cell = "None"

        self.transition_map: dict[Transition, Transition] = {}
        self.basin_map: dict[int, int] = {}
        self.state_vertices: dict[int, StateVertex] = {}
        self.state_edges: dict[SymmLabelPair, StateEdge] = {}
        self.pending_tads: dict[Transition, list[TADSegment]] = {}
        self.rates: dict[int, dict[int, Rate]] = {}
        self.self_rates: dict[int, dict[int, Rate]] = {}
        self.unknown_rates: dict[int, UnknownRate] = {}

        if target_t is not None:
            if min_t is None or max_t is None or n_t is None:
                raise TypeError("min_t, max_t and n_t are needed with target_t")
            self.parametrize(target_t, min_t, max_t, n_t, prefactor_count_thresh, min_barrier)

    def parametrize(
        self,
        target_t: float,
        min_t: float,
        max_t: float,
        n_t: int,
        prefactor_count_thresh: int = 2,
        min_barrier: float = 0.05,
    ) -> None:
        """Set temperatures and Bayesian priors directly."""
        self.max_id = 0
        self.target_b = 1.0 / target_t / BOLTZ
        self.target_t = target_t
        if n_t > 1:
            step = (max_t - min_t) / float(max(1, n_t - 1))
            self.tad_t = [min_t + step * i for i in range(n_t)]
        else:
            self.tad_t = [min_t]
        self.max_k = 10.0
        self.min_ku = 1.0e-20
        self.max_ku = 0.1
        self.prefactor_count_thresh = float(prefactor_count_thresh)
        self.min_barrier = min_barrier
        self.hash_cost = 250.0
        self.neb_cost = 1000.0
        self.rho_init_flavor = 0
        self.prediction_size = 3

    def initialize(self, config: Mapping[str, Any], restart: bool = False) -> None:
        """Read the model parameters from a configuration mapping.

        Keys live under ``Configuration.MarkovModel``, either as flat dotted
        keys or as nested mappings.
        """
        if not restart:
            self.max_id = 0

        self.target_t = _get(config, "TargetTemperature", 300.0, float)
        if restart:
            for vertex in self.state_vertices.values():
                vertex.target_state_time = vertex.state_time(self.target_t)

        self.target_b = 1.0 / self.target_t / BOLTZ
        n_t = _get(config, "TemperatureSteps", 11, int)
        min_t = _get(config, "MinTemperature", 300.0, float)
        max_t = _get(config, "MaxTemperature", 600.0, float)
        self.hash_cost = _get(config, "HashCost", 250.0, float)
        self.neb_cost = _get(config, "NEBCost", 1000.0, float)
        self.rho_init_flavor = _get(config, "RhoInitFlavor", 0, int)
        self.alloc_scheme = _get(config, "AllocScheme", 0, int)
        self.cluster_thresh = _get(config, "ClusterThresh", 0, int)
        self.dephase_thresh = _get(config, "DephaseThresh", 0.2, float)
        self.safe_opt = _get(config, "SafeOpt", True, bool)
        self.prediction_size = _get(config, "PredictionSize", 10, int)
        self.prefactor_count_thresh = _get(config, "PrefactorCountThresh", 2.0, float)
        self.sim_conn = _get(config, "EstimatePendingNEBS", False, bool)
        self.pneb_prior = _get(config, "PendingNEBSPrior", 1.0, float)
        self.include_shallow_states = _get(config, "IncludeShallowStates", False, bool)
        self.lattice_constant = _get(config, "Lattice", "None", str)
        self.primitive_unit_cell = _get(config, "PrimitiveUnitCell", "None", str)
        self.unit_cell = _get(config, "UnitCell", "None", str)
        self.super_cell = _get(config, "SuperCell", "None", str)

        if self.cluster_thresh <= 0:
            self.cluster_thresh = 100000

        step = (max_t - min_t) / float(max(1, n_t - 1))
        self.tad_t = [min_t + step * i for i in range(n_t)]

        # basins should have an escape time of at least 5 ps at the lowest temperature
        self.min_barrier = math.log(5.0) * BOLTZ * min_t
        self.max_k = 10.0
        self.min_ku = 1.0e-20
        self.max_ku = 0.1
        if restart:
            for edge in self.state_edges.values():
                edge.requested_nebs.clear()

    def new_index(self) -> int:
        """Return a fresh vertex id."""
        index = self.max_id
        self.max_id += 1
        return index

    def add_vertex(
        self,
        labels: LabelPair,
        energy: float,
        clusters: int | None = None,
        position: Sequence[float] | None = None,
        symmetries=None,
        force: bool = False,
    ) -> None:
        """Create the vertex of ``labels`` if needed and update its data."""
        if not self.state_vertices:
            self.initial_labels = tuple(labels)
        vertex = self.state_vertices.get(labels[0])
        if vertex is None:
            _log.debug("adding vertex %s,%s E:%seV", labels[0], labels[1], energy)
            vertex = StateVertex(reference_label=tuple(labels), energy=energy, id=self.new_index())
            self.state_vertices[labels[0]] = vertex
            if clusters is None:
                return
        vertex.update(labels[1], energy, clusters, position, symmetries, force)

    def add_edge(
        self, edge_labels: SymmLabelPair, transition_labels: SymmLabelPair | None = None
    ) -> None:
        """Create the edge if needed; register ``transition_labels`` in its map."""
        edge = self.state_edges.get(edge_labels)
        if edge is None:
            edge = StateEdge(labels=edge_labels)
            self.state_edges[edge_labels] = edge
        if transition_labels is None:
            return
        forwards = edge_labels.first == edge.labels.first
        if transition_labels not in edge.self_edge_map:
            key = transition_labels if forwards else transition_labels.rev()
            edge.self_edge_map[key] = (key, _identity())

    def add_transition_edge(self, transition: Transition) -> None:
        """Create the edge of a transition and register its non-canonical labels."""
        self.add_edge(canon_trans(transition), noncanon_trans(transition))

    def fault_check(self, seg: TADSegment) -> bool:
        """Return True for a segment to reject; book its trials and overhead."""
        faulty = not seg.dephased
        if seg.trials > 0:
            vertex = self.state_vertices.get(seg.initial_labels[0])
            if vertex is not None:
                vertex.trials += seg.trials
                vertex.overhead += seg.overhead
        if faulty:
            _log.debug("faulty/undephased segment %s", seg.describe())
        return faulty

    def add_segment(self, seg: TADSegment) -> None:
        """Incorporate a TAD segment: state times, and a jump if it left the basin."""
        if self.fault_check(seg):
            return
        _log.debug("adding segment %s", seg.describe())
        self.add_vertex(seg.initial_labels, seg.initial_e, seg.initial_clusters, seg.initial_position)

        if seg.transition.first != tuple(seg.initial_labels):
            _log.debug(
                "%s => %s", seg.transition.first, seg.initial_labels
            )

        vertex = self.state_vertices[seg.initial_labels[0]]
        vertex.basin_labels.update(seg.basin_labels)

        vertex = self.state_vertices[seg.transition.first[0]]
        vertex.add_segment(seg)

        if not seg.out_of_basin:
            return

        self.add_vertex(seg.transition.second, seg.final_e, seg.final_clusters, seg.final_position)
        fpt = vertex.state_time(seg.temperature)

        if seg.transition not in self.transition_map:
            self.transition_map[seg.transition] = seg.transition
            self.transition_map.setdefault(seg.transition.rev(), seg.transition.rev())

        trans = self.transition_map[seg.transition]
        self.add_transition_edge(trans)

        edge_key = canon_trans(trans)
        edge = self.state_edges[edge_key]
        forwards = edge_key.first == edge.labels.first
        tl = noncanon_trans(trans)

        if tl not in edge.completed_nebs and tl not in edge.requested_pms:
            edge.pending_nebs.add(tl if forwards else tl.rev())

        ctl = edge.self_edge_map[tl][0]
        connection = edge.connections.get(ctl)
        if connection is None:
            self.pending_tads.setdefault(trans, []).append(seg)
        else:
            connection.add_jump(seg.temperature, fpt, forwards)

    def add_symmetries(self, path: NEBPathway) -> None:
        """Record state energies, self symmetries and state isomorphisms of a path."""
        self.add_vertex(path.initial_labels, path.initial_e, force=True)
        self.add_vertex(path.final_labels, path.final_e, force=True)

        initial = self.state_vertices[path.initial_labels[0]]
        final = self.state_vertices[path.final_labels[0]]

        initial.self_symmetries.update(
            s for s in path.initial_symmetries if s not in initial.self_symmetries
        )
        final.self_symmetries.update(
            s for s in path.final_symmetries if s not in final.self_symmetries
        )

        for trans, sym in path.equivalent_states:
            if trans.first == initial.reference_label:
                initial.state_isomorphisms.setdefault(trans.second[1], sym)
            elif trans.first == final.reference_label:
                final.state_isomorphisms.setdefault(trans.second[1], sym)

            if trans.second == initial.reference_label:
                initial.state_isomorphisms.setdefault(trans.first[1], sym.inverse())
            elif trans.second == final.reference_label:
                final.state_isomorphisms.setdefault(trans.first[1], sym.inverse())

        for trans, sym in path.self_transitions:
            if trans.first == initial.reference_label:
                initial.state_isomorphisms.setdefault(trans.second[1], sym)
            if trans.first == final.reference_label:
                final.state_isomorphisms.setdefault(trans.second[1], sym)

    def add_transition_maps(self, path: NEBPathway) -> bool:
        """Queue the jumps an NEB found along the way; return True if there were any."""
        if not path.found_transitions:
            return False
        for ft in path.found_transitions:
            _log.debug(ft.describe())
            self.add_transition_edge(ft)
            edge_key = canon_trans(ft)
            edge = self.state_edges[edge_key]
            nctp = noncanon_trans(ft)
            if edge_key.first != edge.labels.first:
                nctp = nctp.rev()
            if (
                nctp not in edge.requested_nebs
                and nctp not in edge.completed_nebs
                and nctp not in edge.pending_nebs
                and nctp not in edge.requested_pms
            ):
                edge.pending_nebs.add(nctp)
            self.transition_map[ft] = ft
            self.transition_map[ft.rev()] = ft.rev()

        trans = Transition(tuple(path.initial_labels), tuple(path.final_labels))
        self.transition_map[trans] = path.found_transitions[0]
        self.transition_map[trans.rev()] = path.found_transitions[-1].rev()
        return True

    def add_duplicate(self, path: NEBPathway) -> bool:
        """Map a path onto an equivalent known connection; True on success.

        When nothing matches, the path is turned into a placeholder result.
        """
        if not path.duplicate:
            return False
        trans = Transition(tuple(path.initial_labels), tuple(path.final_labels))
        edge_key = canon_trans(trans)
        edge = self.state_edges[edge_key]
        if edge_key.first != edge.labels.first:
            _log.debug("pathway not parallel to its edge")

        match: tuple[SymmLabelPair, PointShiftSymmetry] | None = None
        for equivalent, sym in path.equivalent_transitions:
            tl = noncanon_trans(equivalent)
            if tl in edge.connections:
                match = (tl, sym)
                edge.self_edge_map[noncanon_trans(trans)] = match

        if match is None:
            path.saddle_e = MAX_BARRIER + path.initial_e
            path.ftol = 1.0
            path.dx = MSD_THRESH * 2.0
            path.dx_max = MSD_THRESH * 2.0
            path.saddle_labels = path.initial_labels
            return False

        target, target_sym = match
        for equivalent, sym in path.equivalent_transitions:
            tl = noncanon_trans(equivalent)
            if tl in edge.connections and tl != target:
                edge.self_edge_map[tl] = (target, target_sym.compound(sym.inverse()))
                edge.connections[target].assimilate(edge.connections.pop(tl))
        return True

    def add_pathway(self, path: NEBPathway) -> None:
        """Incorporate an NEB result and resolve the TAD jumps waiting for it."""
        if not path.valid:
            _log.info("invalid path, adding to failed NEBS: %s", path.describe())
            ftrans = Transition(tuple(path.initial_labels), tuple(path.final_labels))
            edge = self.state_edges.get(canon_trans(ftrans))
            if edge is not None:
                tl = noncanon_trans(ftrans)
                edge.requested_nebs.discard(tl)
                edge.pending_nebs.discard(tl)
                edge.requested_pms.add(tl)
            return

        self.add_symmetries(path)
        multijump = self.add_transition_maps(path)

        trans = Transition(tuple(path.initial_labels), tuple(path.final_labels))
        tl = noncanon_trans(trans)
        edge_key = canon_trans(trans)
        self.add_edge(edge_key)
        edge = self.state_edges[edge_key]
        if edge_key.first != edge.labels.first:
            _log.debug("pathway not parallel to its edge")

        if not multijump:
            self.transition_map[trans] = trans
            self.transition_map[trans.rev()] = trans.rev()
            if not self.add_duplicate(path):
                edge.connections.pop(tl, None)
                edge.connections[tl] = Connection.from_pathway(path)
                edge.self_edge_map[tl] = (tl, _identity())

        edge.pending_nebs.discard(tl)
        edge.requested_nebs.discard(tl)
        edge.completed_nebs.add(tl)

        for key in sorted(self.pending_tads):
            segments = self.pending_tads[key]
            if not segments:
                continue
            ptrans = self.transition_map.get(key, key)
            pkey = canon_trans(ptrans)
            pedge = self.state_edges[pkey]
            forwards = pkey.first == pedge.labels.first
            ctl = pedge.self_edge_map[noncanon_trans(ptrans)][0]
            connection = pedge.connections.get(ctl)
            if connection is None:
                continue
            vertex = self.state_vertices[ptrans.first[0]]
            for pseg in segments:
                connection.add_jump(pseg.temperature, vertex.state_time(pseg.temperature), forwards)
            segments.clear()

        self.pending_tads = {k: v for k, v in self.pending_tads.items() if v}