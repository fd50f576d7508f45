"""
XTC trajectory backend for xdrtraj.

XTC is the GROMACS compressed coordinate format. Coordinates are stored as
integers scaled by a per-frame precision, so reading back a written frame
reproduces coordinates to within ``1 / precision``.
"""

import math

from ..codec import XTCCodec
from ..config import get_xtc_precision
from ..frame import Frame
from ..handle import FileMode
from ._base import Trajectory

# Frames with at most this many atoms are stored uncompressed and carry no
# precision.
_UNCOMPRESSED_MAX_ATOMS = 9


class XTCTrajectory(Trajectory):
    """
    Read/write XTC trajectories.

    Parameters
    ----------
    path : str or os.PathLike
        Path to the ``.xtc`` file.
    mode : FileMode or str, optional
        ``'r'`` (default), ``'w'`` or ``'a'``.
    codec : Codec, optional
        Alternative codec, mostly useful for testing.

    Attributes
    ----------
    precision : float
        Precision used by :meth:`write`. Starts at the configured default
        (``XDRTRAJ_XTC_PRECISION``, 1000.0 unless set) and is updated with the
        precision of every compressed frame read, except frames read by
        :meth:`lookahead`.

    Examples
    --------
    >>> with XTCTrajectory.open_read("traj.xtc") as trj:
    ...     for frame in trj:
    ...         print(frame.step, frame.time)
    """

    default_codec = XTCCodec()

    def __init__(self, path, mode=FileMode.READ, *, codec=None):
        super().__init__(path, mode, codec=codec)
        self.precision = get_xtc_precision()

    def read(self, frame: Frame) -> None:
        header = self._read_into(frame)
        if header.num_atoms <= _UNCOMPRESSED_MAX_ATOMS or header.precision is None:
            return
        if math.isfinite(header.precision) and header.precision > 0:
            self.precision = header.precision

    def _read_state(self):
        return self.precision

    def _reset_read_state(self, state) -> None:
        self.precision = state

    def write(self, frame: Frame) -> None:
        self._write_from(frame, self.precision)
