"""
Error taxonomy for xdrtraj.

Every native status value returned by the XDR codec is converted to an
:class:`ErrorCode` at the codec boundary, and every failed operation raises
an :class:`XDRError` tagged with the :class:`ErrorTask` that failed.

End of file is a status like any other at this level. Callers that need to
tell "no more frames" apart from a real failure use :meth:`XDRError.is_eof`,
which does not depend on the task.
"""

from __future__ import annotations

import os
from enum import Enum, IntEnum
from pathlib import Path


class ErrorCode(IntEnum):
    """Status codes of the libxdrfile C API."""

    OK = 0
    HEADER = 1
    STRING = 2
    DOUBLE = 3
    INT = 4
    FLOAT = 5
    UINT = 6
    COMPRESSED_3DX = 7
    CLOSE = 8
    MAGIC = 9
    NOMEM = 10
    ENDOFFILE = 11
    FILENOTFOUND = 12

    @property
    def message(self) -> str:
        """Human readable description of the status."""
        return _MESSAGES[self]

    def is_eof(self) -> bool:
        """Return ``True`` if this is the end-of-file sentinel."""
        return self is ErrorCode.ENDOFFILE

    @classmethod
    def from_status(cls, status: int) -> "ErrorCode":
        """
        Convert a raw native status value.

        Raises
        ------
        ValueError
            If the value is not a libxdrfile status. The codec never returns
            such values, so this indicates a broken native contract.
        """
        try:
            return cls(int(status))
        except ValueError:
            raise ValueError(f"Unknown xdrfile status code: {status!r}")


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.OK: "OK",
    ErrorCode.HEADER: "Header",
    ErrorCode.STRING: "String",
    ErrorCode.DOUBLE: "Double",
    ErrorCode.INT: "Integer",
    ErrorCode.FLOAT: "Float",
    ErrorCode.UINT: "Unsigned integer",
    ErrorCode.COMPRESSED_3DX: "Compressed 3D coordinate",
    ErrorCode.CLOSE: "Closing file",
    ErrorCode.MAGIC: "Magic number",
    ErrorCode.NOMEM: "Not enough memory",
    ErrorCode.ENDOFFILE: "End of file",
    ErrorCode.FILENOTFOUND: "File not found",
}


class ErrorTask(Enum):
    """The operation that failed."""

    OPEN_FILE = "open file"
    PATH_ENCODING = "convert path"
    READ_NUM_ATOMS = "read number of atoms"
    READ = "read frame"
    WRITE = "write frame"
    FLUSH = "flush file"
    SEEK = "seek"
    CHECK_NUM_ATOMS = "check number of atoms"


class XDRError(Exception):
    """
    Failure of an xdrtraj operation.

    Parameters
    ----------
    task : ErrorTask
        Which operation failed.
    code : ErrorCode, optional
        Native status, when the native API reported one. Opening a file and
        converting a path do not produce a status.
    path : path-like, optional
        File path, for ``OPEN_FILE`` and ``PATH_ENCODING`` errors.
    mode : FileMode, optional
        Requested open mode, for ``OPEN_FILE`` errors.
    reason : str, optional
        Extra description, e.g. why a path could not be converted.
    source : XDRError, optional
        Underlying error for ``CHECK_NUM_ATOMS``.

    Notes
    -----
    Two errors compare equal when task, code, path and mode are equal. This
    lets tests and callers assert exactly which failure happened.
    """

    def __init__(
        self,
        task: ErrorTask,
        code: ErrorCode | None = None,
        *,
        path=None,
        mode=None,
        reason: str | None = None,
        source: XDRError | None = None,
    ):
        super().__init__(task, code)
        self.task = task
        self.code = None if code is None else ErrorCode.from_status(code)
        self.path = _as_path(path)
        self.mode = mode
        self.reason = reason
        self.source = source

    # ------------------------------------------------------------------
    # Named constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_open(cls, path, mode) -> XDRError:
        return cls(ErrorTask.OPEN_FILE, path=path, mode=mode)

    @classmethod
    def from_path(cls, path, reason: str) -> XDRError:
        return cls(ErrorTask.PATH_ENCODING, path=path, reason=reason)

    @classmethod
    def from_read(cls, code: ErrorCode) -> XDRError:
        return cls(ErrorTask.READ, code)

    @classmethod
    def from_write(cls, code: ErrorCode) -> XDRError:
        return cls(ErrorTask.WRITE, code)

    @classmethod
    def from_flush(cls, code: ErrorCode) -> XDRError:
        return cls(ErrorTask.FLUSH, code)

    @classmethod
    def from_read_num_atoms(cls, code: ErrorCode) -> XDRError:
        return cls(ErrorTask.READ_NUM_ATOMS, code)

    @classmethod
    def from_seek(cls, code: ErrorCode | None = None) -> XDRError:
        return cls(ErrorTask.SEEK, code)

    @classmethod
    def from_check_num_atoms(cls, source: XDRError) -> XDRError:
        """Wrap a failed atom-count lookup seen while iterating."""
        error = cls(ErrorTask.CHECK_NUM_ATOMS, source.code, source=source)
        error.__cause__ = source
        return error

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def is_eof(self) -> bool:
        """Return ``True`` if the native status was end of file."""
        return self.code is not None and self.code.is_eof()

    def _key(self) -> tuple:
        return (self.task, self.code, self.path, self.mode)

    def __eq__(self, other):
        if not isinstance(other, XDRError):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return f"{type(self).__name__}(task={self.task}, code={self.code!r})"

    def __str__(self):
        if self.task is ErrorTask.OPEN_FILE:
            mode = getattr(self.mode, 'value', self.mode)
            return f"Could not open file at '{self.path}' in mode '{mode}'"
        if self.task is ErrorTask.PATH_ENCODING:
            return f"Could not convert path '{self.path}': {self.reason}"
        if self.task is ErrorTask.CHECK_NUM_ATOMS:
            return f"Could not check number of atoms: {self.source}"
        if self.code is None:
            return f"Failed to {self.task.value}"
        return f"Failed to {self.task.value}: {self.code.message} (code {int(self.code)})"


def check_code(status: int, task: ErrorTask) -> None:
    """
    Raise the error matching a native status unless it is OK.

    Parameters
    ----------
    status : int
        Raw status returned by the codec.
    task : ErrorTask
        Operation the status belongs to.

    Raises
    ------
    XDRError
        If ``status`` is not ``ErrorCode.OK``.
    ValueError
        If ``status`` is not a known libxdrfile status.
    """
    code = ErrorCode.from_status(status)
    if code is not ErrorCode.OK:
        raise XDRError(task, code)


def _as_path(path):
    if isinstance(path, (str, bytes, os.PathLike)):
        return Path(os.fsdecode(path))
    return path
