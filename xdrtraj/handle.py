"""
Owned handle to a native XDR file.
"""

from __future__ import annotations

import os
import sys
import warnings
from enum import Enum, IntEnum
from pathlib import Path

from .codec import Codec
from .errors import ErrorCode, XDRError


class FileMode(Enum):
    """Open mode of a trajectory file."""

    READ = "r"
    WRITE = "w"
    APPEND = "a"

    @classmethod
    def from_str(cls, mode: str | FileMode) -> FileMode:
        """
        Parse ``'r'``, ``'w'`` or ``'a'`` (or a ``FileMode``).

        Raises
        ------
        ValueError
            If the mode is not recognised.
        """
        if isinstance(mode, cls):
            return mode
        try:
            return cls(str(mode).lower().strip())
        except ValueError:
            raise ValueError(
                f"Unsupported file mode: '{mode}'. Expected one of "
                f"{[m.value for m in cls]}."
            )


class SeekOrigin(IntEnum):
    """Reference point for :meth:`XDRFile.seek`, same values as ``os.SEEK_*``."""

    START = os.SEEK_SET
    CURRENT = os.SEEK_CUR
    END = os.SEEK_END


def encode_path(path) -> bytes:
    """
    Convert a path to the narrow byte string handed to the native codec.

    Parameters
    ----------
    path : str, bytes or os.PathLike
        File path.

    Returns
    -------
    bytes
        Encoded path, without a trailing NUL.

    Raises
    ------
    XDRError
        ``PATH_ENCODING`` if the path cannot be encoded with the filesystem
        encoding or contains an embedded NUL byte.
    """
    try:
        raw = os.fspath(path)
    except TypeError as exc:
        raise XDRError.from_path(path, str(exc)) from exc
    if isinstance(raw, str):
        try:
            raw = raw.encode(sys.getfilesystemencoding(), "strict")
        except UnicodeEncodeError as exc:
            raise XDRError.from_path(path, str(exc)) from exc
    if b"\0" in raw:
        raise XDRError.from_path(path, "embedded NUL byte")
    return raw


class XDRFile:
    """
    Owner of one open native XDR file.

    Use :meth:`open` to create instances. The native resource is released
    exactly once, by :meth:`close`, by leaving a ``with`` block, or as a last
    resort when the object is garbage-collected.

    Attributes
    ----------
    path : pathlib.Path
        Path the file was opened with.
    mode : FileMode
        Open mode.
    codec : Codec
        Codec owning the native handle.
    """

    def __init__(self, native, path: Path, mode: FileMode, codec: Codec):
        self._native = native
        self.path = path
        self.mode = mode
        self.codec = codec

    @classmethod
    def open(cls, path, mode: FileMode | str, codec: Codec) -> XDRFile:
        """
        Open ``path`` with ``codec``.

        Raises
        ------
        XDRError
            ``PATH_ENCODING`` if the path is not representable, ``OPEN_FILE``
            if the native open fails. The native API gives no detail on why
            opening failed, so no code is attached.
        """
        mode = FileMode.from_str(mode)
        encoded = encode_path(path)
        native = codec.open(os.fsdecode(encoded), mode.value)
        if native is None:
            raise XDRError.from_open(path, mode)
        return cls(native, Path(os.fsdecode(encoded)), mode, codec)

    @property
    def closed(self) -> bool:
        return self._native is None

    def _require_open(self):
        if self._native is None:
            raise ValueError("I/O operation on closed trajectory file.")
        return self._native

    @property
    def native(self):
        """The codec's native handle. Raises ``ValueError`` once closed."""
        return self._require_open()

    def tell(self) -> int:
        """
        Return the current byte offset.

        Raises
        ------
        RuntimeError
            If the native call fails. This cannot happen for an open file.
        """
        position = self.codec.tell(self._require_open())
        if position < 0:
            raise RuntimeError(f"Native tell failed on open file '{self.path}'.")
        return position

    def seek(self, offset: int, origin: SeekOrigin | int = SeekOrigin.START) -> int:
        """
        Move to ``offset`` relative to ``origin`` and return the new position.

        Raises
        ------
        XDRError
            ``SEEK`` if the native call fails.
        """
        origin = SeekOrigin(origin)
        status = self.codec.seek(self._require_open(), int(offset), int(origin))
        if status != ErrorCode.OK:
            raise XDRError.from_seek()
        return self.tell()

    def close(self) -> None:
        """Release the native file. Failures are reported as a warning only."""
        native, self._native = self._native, None
        if native is None:
            return
        try:
            status = self.codec.close(native)
        except Exception as exc:
            warnings.warn(f"Error while closing '{self.path}': {exc}", RuntimeWarning, stacklevel=2)
            return
        if status != ErrorCode.OK:
            warnings.warn(
                f"Error while closing '{self.path}': status {status}", RuntimeWarning, stacklevel=2
            )

    def __enter__(self) -> XDRFile:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_native", None) is not None:
            warnings.warn(f"unclosed trajectory file '{self.path}'", ResourceWarning, stacklevel=2)
            self.close()

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return f"<XDRFile '{self.path}' mode='{self.mode.value}' {state}>"
