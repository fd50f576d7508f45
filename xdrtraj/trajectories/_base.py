"""
Base classes for XDR trajectories.

This module defines the abstract trajectory interface shared by the XTC and
TRR backends, and the per-trajectory atom-count cache.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Callable

from ..codec import Codec, FrameHeader
from ..errors import ErrorTask, XDRError, check_code
from ..frame import Frame, step_from_native
from ..handle import FileMode, SeekOrigin, XDRFile
from ..iterators import SeekTrajectoryIterator, TrajectoryIterator


class NumAtomsCache:
    """
    Once-cell holding the atom count of one trajectory, or the error raised
    while determining it.

    The computation runs at most once. Every later :meth:`get` returns the
    same count, or raises a copy of the same error, without touching the file.
    """

    __slots__ = ("_value", "_error", "_computed")

    def __init__(self) -> None:
        self._value: int | None = None
        self._error: XDRError | None = None
        self._computed = False

    @property
    def computed(self) -> bool:
        return self._computed

    def get(self, compute: Callable[[], int]) -> int:
        """
        Return the cached count, running ``compute`` on the first call.

        Raises
        ------
        XDRError
            The error raised by ``compute`` on the first call, replayed on
            every call.
        """
        if not self._computed:
            try:
                self._value = compute()
            except XDRError as e:
                self._error = e
            self._computed = True
        if self._error is not None:
            raise copy.copy(self._error)
        return self._value


class Trajectory(ABC):
    """
    Abstract base class for XDR trajectory files.

    Subclasses choose the codec and implement :meth:`read` and
    :meth:`write`. The rest of the interface (flushing, positioning, the
    atom-count cache and iteration) is shared.

    Parameters
    ----------
    path : str or os.PathLike
        Trajectory file.
    mode : FileMode or str, optional
        ``'r'`` (default), ``'w'`` or ``'a'``.
    codec : Codec, optional
        Codec instance. Defaults to the format's ``default_codec``.

    Raises
    ------
    XDRError
        ``OPEN_FILE`` or ``PATH_ENCODING`` if the file cannot be opened.

    Notes
    -----
    A trajectory owns one native file and must be driven by a single thread.
    Close it with :meth:`close` or use it as a context manager.
    """

    default_codec: Codec

    def __init__(self, path, mode: FileMode | str = FileMode.READ, *, codec: Codec | None = None):
        self.codec = self.default_codec if codec is None else codec
        self.handle = XDRFile.open(path, mode, self.codec)
        self._num_atoms = NumAtomsCache()

    @classmethod
    def open(cls, path, mode: FileMode | str, **kwargs):
        """Open ``path`` in the given mode."""
        return cls(path, mode, **kwargs)

    @classmethod
    def open_read(cls, path, **kwargs):
        """Open a file in read mode."""
        return cls(path, FileMode.READ, **kwargs)

    @classmethod
    def open_write(cls, path, **kwargs):
        """Open a file in write mode, truncating it."""
        return cls(path, FileMode.WRITE, **kwargs)

    @classmethod
    def open_append(cls, path, **kwargs):
        """Open a file in append mode."""
        return cls(path, FileMode.APPEND, **kwargs)

    @property
    def path(self):
        return self.handle.path

    @property
    def mode(self) -> FileMode:
        return self.handle.mode

    # ------------------------------------------------------------------
    # Trajectory interface
    # ------------------------------------------------------------------

    @abstractmethod
    def read(self, frame: Frame) -> None:
        """
        Read the next step of the trajectory into ``frame``.

        ``frame`` must be writable and sized for the file (see
        :meth:`get_num_atoms`). Its step, time, box and coordinates are
        overwritten in place.

        Raises
        ------
        XDRError
            ``READ`` on failure. At the end of the file the error has
            ``is_eof()`` set.
        """
        ...

    @abstractmethod
    def write(self, frame: Frame) -> None:
        """
        Append ``frame`` to the trajectory. The frame is not modified.

        Raises
        ------
        XDRError
            ``WRITE`` on failure.
        """
        ...

    def flush(self) -> None:
        """
        Force buffered frames out to the file.

        Raises
        ------
        XDRError
            ``FLUSH`` on failure.
        """
        check_code(self.codec.flush(self.handle.native), ErrorTask.FLUSH)

    def get_num_atoms(self) -> int:
        """
        Return the number of atoms per frame.

        The file is scanned on the first call only; the count, or the error,
        is cached for the lifetime of this trajectory.

        Raises
        ------
        XDRError
            ``READ_NUM_ATOMS`` if the count cannot be determined.
        """
        return self._num_atoms.get(self._read_num_atoms)

    def _read_num_atoms(self) -> int:
        status, num_atoms = self.codec.read_natoms(str(self.handle.path))
        check_code(status, ErrorTask.READ_NUM_ATOMS)
        return num_atoms

    # ------------------------------------------------------------------
    # Shared helpers for subclasses
    # ------------------------------------------------------------------

    def _read_into(self, frame: Frame) -> FrameHeader:
        status, header = self.codec.read_frame(self.handle.native, frame.coords, frame.box_vector)
        check_code(status, ErrorTask.READ)
        frame.step = step_from_native(header.step)
        frame.time = header.time
        return header

    def _read_state(self):
        """Snapshot of state that :meth:`read` updates besides the position."""
        return None

    def _reset_read_state(self, state) -> None:
        """Restore a snapshot taken by :meth:`_read_state`."""

    def _write_from(self, frame: Frame, precision: float | None = None) -> None:
        header = FrameHeader(frame.num_atoms, frame.step, frame.time, precision)
        status = self.codec.write_frame(self.handle.native, header, frame.coords, frame.box_vector)
        check_code(status, ErrorTask.WRITE)

    # ------------------------------------------------------------------
    # Positioning and lifetime
    # ------------------------------------------------------------------

    def tell(self) -> int:
        """Current byte offset in the file."""
        return self.handle.tell()

    def seek(self, offset: int, origin: SeekOrigin | int = SeekOrigin.START) -> int:
        """Reposition the file and return the new byte offset."""
        return self.handle.seek(offset, origin)

    def close(self) -> None:
        """Close the underlying file. Buffered frames are written out first."""
        self.handle.close()

    @property
    def closed(self) -> bool:
        return self.handle.closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def __iter__(self) -> TrajectoryIterator:
        """Iterate over the remaining frames, reusing frame buffers."""
        return TrajectoryIterator(self)

    def lookahead(self) -> SeekTrajectoryIterator:
        """
        Iterate over the remaining frames without consuming them.

        When the returned iterator is exhausted, fails, or is closed, the file
        is moved back to the position it had when this method was called.
        """
        return SeekTrajectoryIterator(self)

    def __repr__(self):
        return f"<{type(self).__name__} '{self.handle.path}' mode='{self.handle.mode.value}'>"

