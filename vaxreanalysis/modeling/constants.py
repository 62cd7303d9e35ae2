"""
Configuration and constants for model fitting and comparison.
"""

# =============================================================================
# SAMPLING CONFIGURATION
# =============================================================================

DRAWS = 2000
TUNE = 2000
CHAINS = 4
TARGET_ACCEPT = 0.9
RANDOM_SEED = 1701
HDI_PROB = 0.95

# =============================================================================
# PRIORS
# =============================================================================

# Prior SD of fixed effects, by family (gaussian is on the raw score scale)
PRIOR_SD = {
    "gaussian": 5.0,
    "beta": 2.5,     # logit scale
    "ordinal": 2.5,  # logit scale
}
RANDOM_SD_PRIOR = 1.0
CUTPOINT_PRIOR_SD = 2.5
PRECISION_PRIOR = (2.0, 0.1)  # Gamma(alpha, beta) on the beta precision phi

# =============================================================================
# CONVERGENCE THRESHOLDS
# =============================================================================

RHAT_MAX = 1.01
ESS_MIN = 400
ML_MAXITER = 2000

# =============================================================================
# COMPARISON
# =============================================================================

# |ELPD difference| below this many standard errors is "not clearly distinguishable"
LOO_SE_THRESHOLD = 2.0
CI_ALPHA = 0.05
PPC_QUANTILES = (0.05, 0.25, 0.5, 0.75, 0.95)
