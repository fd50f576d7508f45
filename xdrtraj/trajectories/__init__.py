"""
Trajectory formats for xdrtraj.

Classes
-------
XTCTrajectory
    Compressed GROMACS XTC trajectories.
TRRTrajectory
    Uncompressed GROMACS TRR trajectories.
Trajectory
    Abstract base class shared by both formats.
NumAtomsCache
    Once-cell caching the atom count (or its error) of a trajectory.
"""

from ._base import NumAtomsCache, Trajectory
from .trr import TRRTrajectory
from .xtc import XTCTrajectory


__all__ = [
    "NumAtomsCache",
    "TRRTrajectory",
    "Trajectory",
    "XTCTrajectory",
]
