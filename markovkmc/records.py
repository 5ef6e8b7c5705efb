"""Transition labels and the results returned by TAD and NEB tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import total_ordering

from .constants import MSD_THRESH
from .symmetry import PointShiftSymmetry

LabelPair = tuple[int, int]


def _pair(labels: LabelPair) -> str:
    return f"{labels[0]},{labels[1]}"


def _flag(value: bool) -> str:
    return str(int(bool(value)))


@total_ordering
@dataclass(frozen=True)
class Transition:
    """A jump between two states, each given as (canonical, non-canonical) labels."""

    first: LabelPair = (0, 0)
    second: LabelPair = (0, 0)

    def _key(self) -> tuple[int, int, int, int]:
        return (self.first[0], self.second[0], self.first[1], self.second[1])

    def __lt__(self, other: Transition) -> bool:
        if not isinstance(other, Transition):
            return NotImplemented
        return self._key() < other._key()

    def rev(self) -> Transition:
        """Return the reverse jump."""
        return Transition(self.second, self.first)

    def describe(self) -> str:
        return f"\t{_pair(self.first)} -> {_pair(self.second)}\n"


TransitionSymmetry = tuple[Transition, PointShiftSymmetry]


@dataclass
class TADSegment:
    """Outcome of one TAD segment."""

    initial_e: float = 0.0
    final_e: float = 0.0
    temperature: float = 0.0
    elapsed_time: float = 0.0
    initial_position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    final_position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    initial_clusters: int = 0
    final_clusters: int = 0
    dephased: bool = False
    out_of_basin: bool = False
    basin_labels: dict[LabelPair, float] = field(default_factory=dict)
    initial_labels: LabelPair = (0, 0)
    transition: Transition = field(default_factory=Transition)
    trials: int = 0
    duration: int = 0
    overhead: int = 0

    def _basin_lines(self) -> str:
        return "".join(f"{_pair(labels)}: {energy:f}eV\n" for labels, energy in self.basin_labels.items())

    @staticmethod
    def _position(pos) -> str:
        return f"[{pos[0]:f},{pos[1]:f},{pos[2]:f}],"

    def describe(self) -> str:
        parts = [
            "TADSegment:\n",
            f"InitialLabels: {_pair(self.initial_labels)}\n",
            f" Clusters: {self.initial_clusters} Position: {self._position(self.initial_position)}",
            f"dephased: {_flag(self.dephased)}\n",
            f"OutOfBasin: {_flag(self.out_of_basin)}\n",
            f"transition: {_pair(self.transition.first)} -> {_pair(self.transition.second)}\n",
            f"energy: {self.initial_e:f} -> {self.final_e:f} ({self.final_e - self.initial_e:f})\n",
        ]
        if self.out_of_basin:
            parts.append(
                f" Final Clusters: {self.final_clusters} Position: {self._position(self.final_position)}"
            )
        parts.append(f"Temperature: {self.temperature:f}\n")
        parts.append(
            "elapsedTime, trials, duration, overhead: "
            f"{self.elapsed_time:f} {self.trials}, {self.duration}, {self.overhead}\n"
        )
        parts.append("BasinLabels: \n")
        parts.append(self._basin_lines())
        return "".join(parts)

    def describe_submission(self) -> str:
        return (
            "TADSegment:\n"
            f"InitialLabels: {_pair(self.initial_labels)}\n"
            f"Temperature: {self.temperature:f}\n"
            f"BasinLabel Size:{len(self.basin_labels)} \n"
            + self._basin_lines()
        )


@dataclass
class NEBPathway:
    """Outcome of one NEB calculation."""

    initial_labels: LabelPair = (0, 0)
    final_labels: LabelPair = (0, 0)
    saddle_labels: LabelPair = (0, 0)
    mm_initial_labels: LabelPair = (0, 0)
    mm_final_labels: LabelPair = (0, 0)
    found_transitions: list[Transition] = field(default_factory=list)
    initial_symmetries: set[PointShiftSymmetry] = field(default_factory=set)
    final_symmetries: set[PointShiftSymmetry] = field(default_factory=set)
    duplicate: bool = False
    valid: bool = True
    mismatch: bool = False
    pairmap: bool = False
    initial_e: float = 0.0
    final_e: float = 0.0
    saddle_e: float = 0.0
    energies: list[float] = field(default_factory=list)
    priornu: tuple[float, float] = (0.0, 0.0)
    self_transitions: list[TransitionSymmetry] = field(default_factory=list)
    equivalent_transitions: list[TransitionSymmetry] = field(default_factory=list)
    equivalent_states: list[TransitionSymmetry] = field(default_factory=list)
    compared_transitions: list[LabelPair] = field(default_factory=list)
    dx: float = 10.0 * MSD_THRESH
    ftol: float = 100.0
    dx_max: float = 0.0

    def describe(self, full: bool = False) -> str:
        parts = [
            "NEBPathway:\n",
            f"({_pair(self.initial_labels)}) -> ",
            f"({_pair(self.saddle_labels)}) -> ",
            f"({_pair(self.final_labels)})\n",
            f"Duplicate: {_flag(self.duplicate)}\n",
        ]
        if self.mismatch:
            parts.append("MISMATCHED PATH! AFTER MIN: ")
            parts.append(f"({_pair(self.mm_initial_labels)}) -> ({_pair(self.mm_final_labels)})\n")
        if not self.duplicate:
            parts.append("Found Transitions:\n")
            parts.extend(f"({_pair(t.first)}) -> ({_pair(t.second)})\n" for t in self.found_transitions)
        if full:
            parts.append(f"Self Symmetries for {self.initial_labels[1]}:")
            parts.extend(s.describe() for s in sorted(self.initial_symmetries))
            if self.final_labels[0] != self.initial_labels[0]:
                parts.append(f"Self Symmetries for {self.final_labels[1]}:\n")
                parts.extend(s.describe() for s in sorted(self.final_symmetries))
            else:
                parts.append("Self Transition Symmetry:\n")
                parts.extend(sym.describe() for _, sym in self.self_transitions)
            if self.equivalent_transitions:
                parts.append("Equivalent Transitions:\n")
                for trans, sym in self.equivalent_transitions:
                    parts.append(f"({_pair(trans.first)}) -> ({_pair(trans.second)})\n")
                    parts.append(sym.describe())
        if not self.duplicate:
            parts.append("NEB results:\n")
            parts.append(
                f"Energy: 0.0 -> {self.saddle_e - self.initial_e:f} -> "
                f"{self.final_e - self.initial_e:f} (+{self.initial_e:f})\n"
            )
            parts.append(f"Prefactors: {self.priornu[0]:f},{self.priornu[1]:f}\n")
            parts.append(f"dX, dXmax, Ftol: {self.dx:f},{self.dx_max:f},{self.ftol:f}\n")
        return "".join(parts)

    def describe_submission(self) -> str:
        return (
            "NEBPathway:\n"
            f"({_pair(self.initial_labels)}) -> ({_pair(self.final_labels)})\n"
        )