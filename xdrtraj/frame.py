"""
In-memory representation of one trajectory step.
"""

from __future__ import annotations

import numpy as np

_U32_MAX = 2**32 - 1


class Frame:
    """
    Positions and metadata of a single trajectory step.

    A frame is a reusable buffer: reading a trajectory overwrites ``step``,
    ``time``, ``box_vector`` and ``coords`` in place, so the same frame can be
    passed to :meth:`Trajectory.read` for every step without reallocating.

    Parameters
    ----------
    num_atoms : int, optional
        Number of coordinate triplets to allocate. Defaults to the length of
        ``coords`` if given, otherwise 0.
    step : int, optional
        Simulation step (unsigned 32-bit).
    time : float, optional
        Simulation time in the file's time unit (stored at 32-bit precision).
    box_vector : array_like, optional
        3x3 matrix whose rows are the periodic box vectors.
    coords : array_like, optional
        Coordinates of shape ``(num_atoms, 3)``. Copied into a float32 buffer.

    Attributes
    ----------
    num_atoms : int
        Number of atoms, always equal to ``len(coords)``.
    coords : np.ndarray
        float32 array of shape ``(num_atoms, 3)``.
    box_vector : np.ndarray
        float32 array of shape ``(3, 3)``.
    writeable : bool
        False for frames shared by a trajectory iterator.

    Raises
    ------
    ValueError
        If ``num_atoms`` is negative or disagrees with ``coords``, or if the
        box or coordinates have the wrong shape.
    """

    __slots__ = ("_step", "_time", "_box_vector", "_coords", "_writeable")

    def __init__(
        self,
        num_atoms: int | None = None,
        *,
        step: int = 0,
        time: float = 0.0,
        box_vector=None,
        coords=None,
    ):
        if coords is None:
            n = 0 if num_atoms is None else int(num_atoms)
            if n < 0:
                raise ValueError(f"Number of atoms must be non-negative, got {num_atoms}.")
            coords = np.zeros((n, 3), dtype=np.float32)
        else:
            coords = np.array(coords, dtype=np.float32, copy=True)
            if coords.size == 0:
                coords = coords.reshape(0, 3)
            if coords.ndim != 2 or coords.shape[1] != 3:
                raise ValueError(f"Coordinates must have shape (num_atoms, 3), got {coords.shape}.")
            if num_atoms is not None and coords.shape[0] != num_atoms:
                raise ValueError("Number of atoms and coordinate array are incommensurate.")

        if box_vector is None:
            box_vector = np.zeros((3, 3), dtype=np.float32)
        else:
            box_vector = np.array(box_vector, dtype=np.float32, copy=True)
            if box_vector.shape != (3, 3):
                raise ValueError(f"Box matrix must be 3x3, got {box_vector.shape}")

        self._writeable = True
        self.coords = coords
        self.box_vector = box_vector
        self.step = step
        self.time = time

    @classmethod
    def with_capacity(cls, num_atoms: int) -> Frame:
        """Return a zero-filled frame able to hold ``num_atoms`` atoms."""
        return cls(num_atoms)

    @property
    def writeable(self) -> bool:
        """
        Whether the frame may be modified.

        Frames yielded by trajectory iterators are not writeable: their
        fields cannot be set and their arrays are read-only.
        """
        return self._writeable

    @writeable.setter
    def writeable(self, value: bool) -> None:
        value = bool(value)
        self._coords.flags.writeable = value
        self._box_vector.flags.writeable = value
        self._writeable = value

    def _check_writeable(self) -> None:
        if not self._writeable:
            raise ValueError("Frame is read-only; use copy() to get a writeable frame.")

    @property
    def coords(self) -> np.ndarray:
        return self._coords

    @coords.setter
    def coords(self, value: np.ndarray) -> None:
        self._check_writeable()
        self._coords = value

    @property
    def box_vector(self) -> np.ndarray:
        return self._box_vector

    @box_vector.setter
    def box_vector(self, value: np.ndarray) -> None:
        self._check_writeable()
        self._box_vector = value

    @property
    def num_atoms(self) -> int:
        return self._coords.shape[0]

    @property
    def step(self) -> int:
        return self._step

    @step.setter
    def step(self, value: int) -> None:
        self._check_writeable()
        value = int(value)
        if not 0 <= value <= _U32_MAX:
            raise ValueError(f"Step must fit in an unsigned 32-bit integer, got {value}.")
        self._step = value

    @property
    def time(self) -> float:
        return self._time

    @time.setter
    def time(self, value: float) -> None:
        self._check_writeable()
        self._time = float(np.float32(value))

    def copy(self) -> Frame:
        """Return an independent, writable copy of this frame."""
        return Frame(step=self.step, time=self.time, box_vector=self.box_vector, coords=self.coords)

    def __eq__(self, other):
        if not isinstance(other, Frame):
            return NotImplemented
        return (
            self.step == other.step
            and self.time == other.time
            and self.num_atoms == other.num_atoms
            and np.array_equal(self.box_vector, other.box_vector)
            and np.array_equal(self.coords, other.coords)
        )

    __hash__ = None

    def __repr__(self):
        return f"Frame(num_atoms={self.num_atoms}, step={self.step}, time={self.time})"


def step_from_native(step: int) -> int:
    """Reinterpret a signed 32-bit step read from a file as unsigned."""
    return int(step) & _U32_MAX


def step_to_native(step: int) -> int:
    """Reinterpret an unsigned 32-bit step as the signed value the file stores."""
    step = int(step) & _U32_MAX
    return step - 2**32 if step >= 2**31 else step
