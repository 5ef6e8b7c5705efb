"""Physical constants, model thresholds and message tags shared by the package."""

import math

NDIM = 3
TINY = 1.0e-16
BOLTZ = 8.6173303e-5
LOG_NU_MIN = math.log(0.5 / math.log(1.0 / 0.05))
PRIOR_NU = 2.0  # prior attempt frequency in THz

MSD_THRESH = 0.6  # displacement threshold in angstroms
MAX_BARRIER = 10.0  # maximum barrier in eV

# Number of point operations of the cube (48) or of the square (8).
N_OPERATIONS = 8 + 40 * (NDIM - 2)

PARSPLICE_STATS_SEGMENTS_TAG = 1234
PARSPLICE_VALIDATED_SEGMENTS_TAG = 2345
TASK_TAG = 3456
PARSPLICE_SYNC_STATS_TAG = 4567

LOCATION_SYSTEM_MIN = 1
LOCATION_SYSTEM_MIN_NC = 2
LOCATION_SYSTEM_SADDLE = 3

DDS_MESG_TAG = 4856
TASK_MANAGER_SIZE_TAG = 1
TASK_MANAGER_DATA_TAG = 2