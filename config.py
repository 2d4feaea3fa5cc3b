# config.py
#
# Global configuration for all simulations, plots, and complexity analysis.

# Parallelization settings
N_JOBS_TRACE = 4
N_JOBS_SCHATTEN = 4

# Reproducibility
MASTER_SEED = 725

# Output location (relative to the repository root)
RESULTS_DIR = "results"

# Default sweep grids
TRACE_N_LIST = [50, 100, 200, 500, 1000]
TRACE_K_LIST = [10, 50, 100, 500]

SCHATTEN_P_LIST = [1, 2, 3, 4, 5]
SCHATTEN_K_LIST = [10, 20, 50, 100]
SCHATTEN_SHAPE = (200, 100)

N_TRIALS = 20
