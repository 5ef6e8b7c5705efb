# markovkmc

`markovkmc` builds a Markov state model of atomic transitions and estimates
rates on it. The model is grown from two kinds of simulation result:

- **TAD segments** record the time spent in a state at some temperature and
  any escape from it.
- **NEB pathways** record saddle energies, attempt frequencies (prefactors)
  and symmetry relations between states and between transitions.

From the model the package computes forward and backward rates for every
edge, at the target temperature and at each TAD temperature. It also gives a
Bayesian estimate of the rate of escape through pathways not yet seen.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `markovkmc.constants`: physical constants and thresholds, for example
  `BOLTZ`, `PRIOR_NU`, `MSD_THRESH`, `MAX_BARRIER` and `N_OPERATIONS`.
- `markovkmc.symmetry`: the 48 operations of the cubic point group
  (`transform_matrix`, `find_inverse_op`, `find_compound_op`,
  `combine_transform`). Also `PointShiftSymmetry`, which is an operation plus
  a shift and has `inverse`, `compound` and `describe`.
- `markovkmc.records`: the results that simulations hand in. These are
  `Transition`, `TADSegment` and `NEBPathway`.
- `markovkmc.elements`: the pieces of the model graph. These are
  `SymmLabelPair`, `StateVertex`, `StateEdge`, `Connection`, `Rate` and
  `UnknownRate`. The module also holds the job records `NEBJob` and `TADJob`,
  and the helpers `canon_trans`, `noncanon_trans`, `mapkeysort` and
  `pairvecsort`.
- `markovkmc.building`: `ModelBase` holds the model state and grows it. Its
  methods are `parametrize`, `initialize`, `add_vertex`, `add_edge`,
  `add_transition_edge`, `add_segment`, `add_pathway` and the steps they use.
- `markovkmc.rates`: `RateModel` extends `ModelBase` with rate estimation.
  Its methods are `allow_allocation`, `calculate_rates`, `unknown_rate`,
  `bayes_ku_kuvar` and `model_edge_params`.
- `markovkmc.mru`: `MRU`, a most-recently-used ordered set, and
  `Transaction`, a record of one data-store transaction.
- `markovkmc.hashing`: the MurmurHash3 finalisers `fmix32` and `fmix64`.

## Usage

```python
from markovkmc.elements import SymmLabelPair
from markovkmc.rates import RateModel
from markovkmc.records import NEBPathway, TADSegment, Transition

# target temperature, lowest and highest TAD temperature, number of steps
model = RateModel(300.0, 300.0, 600.0, 4)

# A TAD segment at 450 K that escaped from state (1, 11) to state (2, 22).
segment = TADSegment(
    initial_labels=(1, 11),
    transition=Transition((1, 11), (2, 22)),
    dephased=True,
    out_of_basin=True,
    temperature=450.0,
    elapsed_time=20.0,
    duration=2,
    final_e=0.3,
)
model.add_segment(segment)  # the jump waits until its pathway is known

# The NEB result for that jump. The waiting jump is then counted.
path = NEBPathway(
    initial_labels=(1, 11),
    final_labels=(2, 22),
    initial_e=0.0,
    final_e=0.3,
    saddle_e=0.8,
    energies=[0.0, 0.8, 0.3],
    priornu=(2.0, 2.0),
    dx=1.0,
    dx_max=1.0,
    ftol=0.01,
)
model.add_pathway(path)

forward, backward = model.calculate_rates(SymmLabelPair(1, 2))
print(forward.target_k_fp, forward.tad_k_fp)

print(model.unknown_rate(1))
print(model.model_edge_params(SymmLabelPair(1, 2)))
```

`unknown_rate` reads the observed exit rates of a state from the `rates` and
`self_rates` dictionaries of the model. These map a state label to a mapping
of neighbour label and `Rate`. If a state has no entries there, the estimate
comes from its residence time alone.

### Configuration

`initialize(config, restart=False)` reads the parameters from a mapping. The
keys live under `Configuration.MarkovModel`, either as flat dotted keys or as
nested mappings:

```python
model.initialize({
    "Configuration": {
        "MarkovModel": {
            "TargetTemperature": 300.0,
            "MinTemperature": 300.0,
            "MaxTemperature": 600.0,
            "TemperatureSteps": 11,
        }
    }
})
```

The other keys it understands are:

- `HashCost`, `NEBCost`
- `RhoInitFlavor`, `AllocScheme`
- `ClusterThresh`, `DephaseThresh`
- `SafeOpt`, `PredictionSize`, `PrefactorCountThresh`
- `EstimatePendingNEBS`, `PendingNEBSPrior`
- `IncludeShallowStates`
- `Lattice`, `PrimitiveUnitCell`, `UnitCell`, `SuperCell`

## What the package does not do

- It does not choose where to sample next. No function solves the model for
  allocation weights or produces `TADJob` and `NEBJob` requests. The job
  records exist, but nothing generates them.
- It does not write the model to disk and does not read it back.
- It has no command-line program.
- It does not run simulations, and it does not distribute work or data
  between processes.