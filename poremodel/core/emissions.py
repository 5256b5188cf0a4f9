"""
Emission log-densities evaluated against calibrated pore model states.

Both functions take the cached logs produced by PoreModel.bake() so that the
per-event cost is a handful of multiplications. All arguments broadcast.
"""

import numpy as np

LOG_INV_SQRT_2PI = -0.5 * np.log(2.0 * np.pi)


def log_normal_pdf(x, mean, stdv, log_stdv):
    """Log density of x under Normal(mean, stdv)."""
    a = (np.asarray(x, dtype=np.float64) - mean) / stdv
    return LOG_INV_SQRT_2PI - log_stdv - 0.5 * a * a


def log_invgauss_pdf(x, mean, lam, log_lam):
    """
    Log density of x under an inverse Gaussian with the given mean and
    shape parameter lam.

    Args:
        x: Observed event spread (must be > 0)
        mean: Calibrated sd_mean
        lam: Calibrated sd_lambda
        log_lam: ln(lam), as cached by bake()
    """
    x = np.asarray(x, dtype=np.float64)
    log_x = np.log(x)
    a = (x - mean) / mean
    return LOG_INV_SQRT_2PI + 0.5 * log_lam - 1.5 * log_x - (lam * a * a) / (2.0 * x)
