"""
TRR trajectory backend for xdrtraj.

TRR is the GROMACS full-precision trajectory format. Only positions are
read and written; velocities and forces in existing files are skipped.
"""

from ..codec import TRRCodec
from ..frame import Frame
from ._base import Trajectory


class TRRTrajectory(Trajectory):
    """
    Read/write TRR trajectories.

    Parameters
    ----------
    path : str or os.PathLike
        Path to the ``.trr`` file.
    mode : FileMode or str, optional
        ``'r'`` (default), ``'w'`` or ``'a'``.
    codec : Codec, optional
        Alternative codec, mostly useful for testing.
    """

    default_codec = TRRCodec()

    def read(self, frame: Frame) -> None:
        self._read_into(frame)

    def write(self, frame: Frame) -> None:
        self._write_from(frame)
