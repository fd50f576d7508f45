"""
Runtime configuration for xdrtraj.

Settings are read once from environment variables when the module is first
imported.

The default XTC write precision can be configured via the
XDRTRAJ_XTC_PRECISION environment variable:
- 1000.0: coordinates stored to 0.001 nm (default, GROMACS default)
- any positive float: coordinates stored to 1/precision nm

Example
-------
>>> import os
>>> os.environ['XDRTRAJ_XTC_PRECISION'] = '10000'  # Before importing xdrtraj
"""

from __future__ import annotations

import math
import os

XTC_PRECISION_ENV_VAR = 'XDRTRAJ_XTC_PRECISION'
DEFAULT_XTC_PRECISION = 1000.0


def _resolve_xtc_precision() -> float:
    """Resolve the XTC write precision from the environment.

    Returns
    -------
    float
        Precision used when writing XTC frames.

    Raises
    ------
    ValueError
        If the environment variable is not a positive, finite number.
    """
    value = os.environ.get(XTC_PRECISION_ENV_VAR, '').strip()
    if not value:
        return DEFAULT_XTC_PRECISION
    try:
        precision = float(value)
    except ValueError:
        raise ValueError(
            f"Invalid {XTC_PRECISION_ENV_VAR} '{value}'. Must be a number."
        )
    if not math.isfinite(precision) or precision <= 0:
        raise ValueError(
            f"Invalid {XTC_PRECISION_ENV_VAR} '{value}'. Must be positive and finite."
        )
    return precision


XTC_PRECISION = _resolve_xtc_precision()


def get_xtc_precision() -> float:
    """
    Get the default precision for writing XTC frames.

    Returns
    -------
    float
        Precision factor (1000.0 means 0.001 nm resolution).
    """
    return XTC_PRECISION
