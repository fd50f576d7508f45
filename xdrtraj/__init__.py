"""Streaming reader/writer for GROMACS XTC and TRR trajectories"""
from .config import get_xtc_precision
from .errors import ErrorCode, ErrorTask, XDRError
from .frame import Frame
from .handle import FileMode, SeekOrigin, XDRFile
from .iterators import SeekTrajectoryIterator, TrajectoryIterator
from .trajectories import NumAtomsCache, TRRTrajectory, Trajectory, XTCTrajectory

MAJOR = 0
MINOR = 1
MICRO = 0
__version__ = f'{MAJOR:d}.{MINOR:d}.{MICRO:d}'

__all__ = [
    "ErrorCode",
    "ErrorTask",
    "FileMode",
    "Frame",
    "NumAtomsCache",
    "SeekOrigin",
    "SeekTrajectoryIterator",
    "TRRTrajectory",
    "Trajectory",
    "TrajectoryIterator",
    "XDRError",
    "XDRFile",
    "XTCTrajectory",
    "get_xtc_precision",
]
