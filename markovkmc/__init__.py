"""Markov state models of atomic transitions built from TAD and NEB results, with rate estimation."""

__version__ = "0.1.0"

__all__ = [
    "constants",
    "symmetry",
    "records",
    "elements",
    "building",
    "rates",
    "hashing",
    "mru",
]