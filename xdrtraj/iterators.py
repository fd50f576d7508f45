"""
Frame iterators for XDR trajectories.

Both iterators read every step into a :class:`~xdrtraj.frame.Frame` buffer
and yield that buffer. A buffer is only overwritten when nothing outside the
iterator refers to it any more, so frames kept by the caller are never
changed behind their back:

* if the caller drops a yielded frame before asking for the next one, the
  same buffer is reused;
* the previously yielded frame is kept as a spare, so in a plain ``for``
  loop (whose loop variable still holds the previous frame while the next
  one is read) the iterator alternates between two buffers;
* a frame that the caller keeps (e.g. ``list(trajectory)``) is never reused,
  and the next step gets a new buffer.

Yielded frames are read-only (``Frame.writeable`` is False): their fields
cannot be set and their arrays cannot be written. Use :meth:`Frame.copy` to
get a frame that can be modified.

Ownership is checked with CPython reference counts, compared with the counts
of a frame that is only held by an attribute (measured at import time).
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from .errors import XDRError
from .frame import Frame
from .handle import SeekOrigin

if TYPE_CHECKING:
    from .trajectories import Trajectory


def _reference_counts(holder, name: str) -> tuple[int, int, int]:
    frame = getattr(holder, name)
    return (
        sys.getrefcount(frame),
        sys.getrefcount(frame.coords),
        sys.getrefcount(frame.box_vector),
    )


class _FrameSlot:
    __slots__ = ("frame",)


def _unshared_reference_counts() -> tuple[int, int, int]:
    slot = _FrameSlot()
    slot.frame = Frame(1)
    return _reference_counts(slot, "frame")


_UNSHARED_COUNTS = _unshared_reference_counts()


def _is_unshared(holder, name: str) -> bool:
    """Return ``True`` if ``holder.<name>`` and its arrays are referenced only there."""
    counts = _reference_counts(holder, name)
    return all(count <= limit for count, limit in zip(counts, _UNSHARED_COUNTS))


class _FrameIterator:
    """Buffer management shared by the trajectory iterators."""

    def __init__(self, trajectory: Trajectory):
        self._trajectory = trajectory
        try:
            num_atoms = trajectory.get_num_atoms()
        except XDRError:
            # An unknown count is not an error until a frame is needed.
            num_atoms = 0
        self._num_atoms = num_atoms
        self._current = Frame(num_atoms)
        self._spare: Frame | None = None
        self._has_error = False
        #: Number of frame buffers allocated so far.
        self.frames_allocated = 1

    @property
    def trajectory(self) -> Trajectory:
        return self._trajectory

    def __iter__(self):
        return self

    def _acquire(self, num_atoms: int) -> Frame:
        """Return a writable frame of ``num_atoms`` atoms that only the iterator holds."""
        if self._current.num_atoms == num_atoms and _is_unshared(self, "_current"):
            frame = self._current
        elif (
            self._spare is not None
            and self._spare.num_atoms == num_atoms
            and _is_unshared(self, "_spare")
        ):
            self._spare, self._current = self._current, self._spare
            frame = self._current
        else:
            # The caller kept the current frame; it becomes the spare and is
            # dropped from the iterator once the caller has it alone.
            self._spare = self._current
            self._current = Frame(num_atoms)
            self.frames_allocated += 1
            if not _is_unshared(self, "_current"):
                raise RuntimeError("Could not get exclusive access to a newly allocated frame.")
            frame = self._current
        frame.writeable = True
        return frame

    @staticmethod
    def _publish(frame: Frame) -> Frame:
        frame.writeable = False
        return frame


class TrajectoryIterator(_FrameIterator):
    """
    Iterator over the remaining frames of a trajectory.

    Yields :class:`~xdrtraj.frame.Frame` objects, reusing buffers as described
    in the module documentation. Obtained with ``iter(trajectory)``.

    Parameters
    ----------
    trajectory : Trajectory
        Open trajectory to read from. Iteration starts at its current
        position.

    Raises
    ------
    XDRError
        From ``__next__``: ``CHECK_NUM_ATOMS`` if the atom count of the file
        cannot be determined, or the ``READ`` error of a failed read. After an
        error the iterator is exhausted for good; the end of the file simply
        ends the iteration.

    Attributes
    ----------
    frames_allocated : int
        Number of frame buffers allocated so far.
    """

    def __next__(self) -> Frame:
        if self._has_error:
            raise StopIteration

        try:
            num_atoms = self._trajectory.get_num_atoms()
        except XDRError as e:
            self._has_error = True
            if e.is_eof():
                # Empty file.
                raise StopIteration from None
            raise XDRError.from_check_num_atoms(e) from e

        frame = self._acquire(num_atoms)
        try:
            self._trajectory.read(frame)
        except XDRError as e:
            if e.is_eof():
                raise StopIteration from None
            self._has_error = True
            raise
        return self._publish(frame)


class SeekTrajectoryIterator(_FrameIterator):
    """
    Iterator that reads ahead and then puts the trajectory back.

    The file position is recorded on construction and restored when the
    iterator reaches the end of the file, when a read fails (before the error
    is raised), or when :meth:`close` is called, together with state that
    reading updates (the precision of an XTC trajectory). Restoring happens
    once; the iterator is exhausted afterwards. Obtained with
    :meth:`Trajectory.lookahead`.

    Parameters
    ----------
    trajectory : Trajectory
        Open, seekable trajectory.

    Raises
    ------
    XDRError
        From ``__next__``: the ``READ`` error of a failed read, or the
        ``SEEK`` error if the original position cannot be restored.

    Examples
    --------
    >>> with trj.lookahead() as frames:
    ...     steps = [frame.step for frame in frames]
    >>> trj.read(frame)  # reads the same frame the lookahead started at
    """

    def __init__(self, trajectory: Trajectory):
        super().__init__(trajectory)
        self._start = trajectory.tell()
        self._state = trajectory._read_state()
        self._restored = False

    @property
    def start_position(self) -> int:
        """Byte offset the trajectory is restored to."""
        return self._start

    def __next__(self) -> Frame:
        if self._has_error or self._restored:
            raise StopIteration

        frame = self._acquire(self._num_atoms)
        try:
            self._trajectory.read(frame)
        except XDRError as e:
            if not e.is_eof():
                self._has_error = True
            self._restore()
            if e.is_eof():
                raise StopIteration from None
            raise
        return self._publish(frame)

    def _restore(self) -> None:
        if self._restored:
            return
        self._restored = True
        # Skipped when nothing was consumed, e.g. on a file opened for writing.
        if self._trajectory.tell() != self._start:
            self._trajectory.seek(self._start, SeekOrigin.START)
        self._trajectory._reset_read_state(self._state)

    def close(self) -> None:
        """Stop iterating and restore the original position."""
        self._restore()

    def __enter__(self) -> SeekTrajectoryIterator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
