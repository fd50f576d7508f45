"""
XDR trajectory codecs.

The binary XTC/TRR encoding is provided by the libxdrfile routines that ship
with MDAnalysis (:mod:`MDAnalysis.lib.formats.libmdaxdr`). This module adapts
them to the status-code interface used by the rest of xdrtraj:

* every method returns a raw libxdrfile status instead of raising, so the
  handle and trajectory layers can convert it to an :class:`~xdrtraj.errors.XDRError`
  at a single place;
* a file that exists but cannot be decoded still opens, and the decoding
  status is reported by the first read, as ``xdrfile_open`` would do;
* positions are decoded straight into the caller's buffer
  (``read_direct_x``/``read_direct_xvf``), so reading allocates no
  coordinate arrays;
* files of zero-atom frames, which libmdaxdr refuses to open, are decoded
  record by record here;
* output is written to a temporary segment next to the target file and
  appended to the target on :meth:`Codec.flush` and :meth:`Codec.close`.
  This gives a real flush and supports append mode, which MDAnalysis does
  not offer.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import NamedTuple

import numpy as np
from MDAnalysis.lib.formats.libmdaxdr import TRRFile, XTCFile  # type: ignore[import-untyped]

from .errors import ErrorCode
from .frame import step_to_native

#: Status returned by :meth:`Codec.seek` when repositioning fails. The native
#: seek reports no libxdrfile code.
SEEK_FAILED = -1

_WHENCE = {
    os.SEEK_SET: "SEEK_SET",
    os.SEEK_CUR: "SEEK_CUR",
    os.SEEK_END: "SEEK_END",
}

# Checked in order, so longer fragments come before the ones they contain.
_MESSAGE_CODES: tuple[tuple[str, ErrorCode], ...] = (
    ("end of file", ErrorCode.ENDOFFILE),
    ("does not exist", ErrorCode.FILENOTFOUND),
    ("not found", ErrorCode.FILENOTFOUND),
    ("could not find", ErrorCode.FILENOTFOUND),
    ("magic", ErrorCode.MAGIC),
    ("unsigned integer", ErrorCode.UINT),
    ("compressed 3d", ErrorCode.COMPRESSED_3DX),
    ("memory", ErrorCode.NOMEM),
    ("closing", ErrorCode.CLOSE),
    ("header", ErrorCode.HEADER),
    ("string", ErrorCode.STRING),
    ("double", ErrorCode.DOUBLE),
    ("integer", ErrorCode.INT),
    ("float", ErrorCode.FLOAT),
)


def status_from_exception(exc: BaseException) -> ErrorCode:
    """
    Map an exception raised by libmdaxdr to the libxdrfile status behind it.

    libmdaxdr signals end of file with ``StopIteration``/``EOFError`` and
    every other failure with an ``OSError`` whose message names the
    libxdrfile error. Messages that name no known error map to
    ``ErrorCode.HEADER``.
    """
    if isinstance(exc, (EOFError, StopIteration)):
        return ErrorCode.ENDOFFILE
    message = str(exc).lower()
    for fragment, code in _MESSAGE_CODES:
        if fragment in message:
            return code
    return ErrorCode.HEADER


class FrameHeader(NamedTuple):
    """Per-frame fields that are not coordinate arrays."""

    num_atoms: int
    step: int
    time: float
    precision: float | None = None


class Codec(ABC):
    """
    Status-code interface to a native XDR trajectory codec.

    Native handles are opaque objects returned by :meth:`open`. Methods
    return libxdrfile status values (``int``) and never raise for file or
    format problems.
    """

    #: File extension used for temporary output segments.
    extension: str = ""

    @abstractmethod
    def open(self, path: str, mode: str):
        """Open ``path`` in mode ``'r'``, ``'w'`` or ``'a'``; ``None`` on failure."""
        ...

    @abstractmethod
    def close(self, native) -> int:
        ...

    @abstractmethod
    def read_frame(
        self, native, coords: np.ndarray, box: np.ndarray
    ) -> tuple[int, FrameHeader | None]:
        """
        Decode the next frame into ``coords`` and ``box`` in place.

        Returns the status and, on success, the frame header.
        """
        ...

    @abstractmethod
    def write_frame(
        self, native, header: FrameHeader, coords: np.ndarray, box: np.ndarray
    ) -> int:
        ...

    @abstractmethod
    def read_natoms(self, path: str) -> tuple[int, int]:
        """Scan ``path`` for its atom count, independent of any open handle."""
        ...

    @abstractmethod
    def seek(self, native, offset: int, whence: int) -> int:
        ...

    @abstractmethod
    def tell(self, native) -> int:
        """Current byte offset, or a negative value on failure."""
        ...

    @abstractmethod
    def flush(self, native) -> int:
        ...


# -----------------------------------------------------------------------------
# Zero-atom frame records
# -----------------------------------------------------------------------------

_XTC_MAGIC = 1995
_TRR_MAGIC = 1993


class _RecordError(Exception):
    """A frame record that could not be decoded, with its libxdrfile status."""

    def __init__(self, code: ErrorCode):
        super().__init__(code)
        self.code = code


def _unpack(fh, dtype: str, count: int = 1) -> np.ndarray:
    """Read ``count`` big-endian XDR values of ``dtype`` from ``fh``."""
    dtype = np.dtype(dtype)
    size = dtype.itemsize * count
    data = fh.read(size)
    if len(data) != size:
        raise EOFError("truncated frame record")
    return np.frombuffer(data, dtype=dtype, count=count)


def _unpack_ints(fh, count: int) -> list[int]:
    return [int(v) for v in _unpack(fh, ">i4", count)]


class _RecordStream:
    """
    Read-mode handle for files whose frames hold no atoms.

    libmdaxdr refuses to open such files, so their records are decoded
    here with ``parse``, which reads one record from a binary file object.
    """

    def __init__(self, path: str, parse):
        self.fh = open(path, "rb")
        self.parse = parse

    def read(self):
        start = self.fh.tell()
        if start >= os.fstat(self.fh.fileno()).st_size:
            raise _RecordError(ErrorCode.ENDOFFILE)
        try:
            return self.parse(self.fh)
        except (_RecordError, EOFError):
            self.fh.seek(start)
            raise


# -----------------------------------------------------------------------------
# libmdaxdr native handles
# -----------------------------------------------------------------------------

class _ReadStream:
    """Read-mode handle around a libmdaxdr file object."""

    def __init__(self, xdr=None, status: ErrorCode = ErrorCode.OK):
        self.xdr = xdr
        # Replayed by every read when the file could not be decoded.
        self.status = status
        # Scratch rows for data the caller does not ask for (TRR velocities
        # and forces), allocated on first use.
        self.scratch: dict[str, np.ndarray] = {}

    def scratch_array(self, name: str, num_atoms: int) -> np.ndarray:
        array = self.scratch.get(name)
        if array is None or array.shape[0] != num_atoms:
            array = np.empty((num_atoms, 3), dtype=np.float32)
            self.scratch[name] = array
        return array


class _WriteStream:
    """Write/append-mode handle writing through temporary segments."""

    def __init__(self, path: str, file_class, extension: str, truncate: bool):
        self.path = path
        self.file_class = file_class
        self.extension = extension
        with open(path, "wb" if truncate else "ab"):
            pass
        self.committed = os.path.getsize(path)
        self.segment = None
        self.segment_path: str | None = None

    def active_segment(self):
        if self.segment is None:
            directory = os.path.dirname(os.path.abspath(self.path))
            prefix = "." + os.path.basename(self.path) + "."
            fd, segment_path = tempfile.mkstemp(
                suffix=self.extension, prefix=prefix, dir=directory
            )
            os.close(fd)
            self.segment_path = segment_path
            self.segment = self.file_class(segment_path, "w")
        return self.segment

    def tell(self) -> int:
        if self.segment is None:
            return self.committed
        return self.committed + int(self.segment._bytes_tell())

    def commit(self) -> None:
        """Close the active segment and append it to the target file."""
        if self.segment is None:
            return
        segment, segment_path = self.segment, self.segment_path
        self.segment = None
        self.segment_path = None
        try:
            segment.close()
            with open(segment_path, "rb") as src, open(self.path, "ab") as dst:
                shutil.copyfileobj(src, dst)
        finally:
            os.remove(segment_path)
        self.committed = os.path.getsize(self.path)


class _LibmdaxdrCodec(Codec):
    """Common adapter for the libmdaxdr ``XTCFile`` and ``TRRFile`` classes."""

    file_class: type

    def open(self, path: str, mode: str):
        if mode == "r":
            if not os.path.isfile(path) or not os.access(path, os.R_OK):
                return None
            if os.path.getsize(path) == 0:
                return _ReadStream(status=ErrorCode.ENDOFFILE)
            try:
                return _ReadStream(self.file_class(path, "r"))
            except (OSError, EOFError) as exc:
                if self._holds_empty_frames(path):
                    return _RecordStream(path, self._parse_empty_record)
                return _ReadStream(status=status_from_exception(exc))
        if mode in ("w", "a"):
            try:
                return _WriteStream(path, self.file_class, self.extension, truncate=(mode == "w"))
            except OSError:
                return None
        return None

    def close(self, native) -> int:
        try:
            if isinstance(native, _ReadStream):
                if native.xdr is not None:
                    native.xdr.close()
            elif isinstance(native, _RecordStream):
                native.fh.close()
            else:
                native.commit()
        except OSError:
            return ErrorCode.CLOSE
        return ErrorCode.OK

    def read_frame(self, native, coords, box):
        if isinstance(native, _RecordStream):
            return self._read_empty_frame(native, box)
        if not isinstance(native, _ReadStream):
            # Reading a write-only stream fails on the first integer, which
            # libxdrfile reports as end of file.
            return ErrorCode.ENDOFFILE, None
        if native.status is not ErrorCode.OK:
            return native.status, None

        n = int(native.xdr.n_atoms)
        if n > coords.shape[0]:
            return ErrorCode.HEADER, None
        target = coords[:n]
        direct = target.dtype == np.float32 and target.flags.c_contiguous and target.flags.writeable
        if not direct:
            target = native.scratch_array("x", n)
        try:
            decoded = self._read_direct(native, target)
        except (OSError, EOFError, StopIteration) as exc:
            return status_from_exception(exc), None
        if not direct:
            coords[:n] = target

        box[...] = decoded.box
        header = FrameHeader(n, int(decoded.step), float(decoded.time), self._precision(decoded))
        return ErrorCode.OK, header

    def write_frame(self, native, header, coords, box):
        if not isinstance(native, _WriteStream):
            return ErrorCode.INT
        # libmdaxdr needs writable C-contiguous float32 buffers.
        coords = np.require(coords, dtype=np.float32, requirements=["C", "W"])
        box = np.require(box, dtype=np.float32, requirements=["C", "W"])
        try:
            self._write(native.active_segment(), header, coords, box)
        except OSError as exc:
            return status_from_exception(exc)
        return ErrorCode.OK

    def read_natoms(self, path: str) -> tuple[int, int]:
        if not os.path.isfile(path):
            return ErrorCode.FILENOTFOUND, 0
        if os.path.getsize(path) == 0:
            return ErrorCode.ENDOFFILE, 0
        try:
            xdr = self.file_class(path, "r")
        except (OSError, EOFError) as exc:
            if self._holds_empty_frames(path):
                return ErrorCode.OK, 0
            return status_from_exception(exc), 0
        try:
            return ErrorCode.OK, int(xdr.n_atoms)
        finally:
            xdr.close()

    def seek(self, native, offset: int, whence: int) -> int:
        if isinstance(native, _RecordStream):
            try:
                native.fh.seek(offset, whence)
            except (OSError, ValueError):
                return SEEK_FAILED
            return ErrorCode.OK
        if not isinstance(native, _ReadStream):
            return SEEK_FAILED
        if native.xdr is None:
            return ErrorCode.OK
        try:
            native.xdr._bytes_seek(offset, whence=_WHENCE[whence])
        except (OSError, KeyError):
            return SEEK_FAILED
        return ErrorCode.OK

    def tell(self, native) -> int:
        try:
            if isinstance(native, _ReadStream):
                return 0 if native.xdr is None else int(native.xdr._bytes_tell())
            if isinstance(native, _RecordStream):
                return native.fh.tell()
            return native.tell()
        except OSError:
            return -1

    def flush(self, native) -> int:
        if not isinstance(native, _WriteStream):
            return ErrorCode.OK
        try:
            native.commit()
        except OSError:
            return ErrorCode.CLOSE
        return ErrorCode.OK

    # ------------------------------------------------------------------
    # Zero-atom files
    # ------------------------------------------------------------------

    def _holds_empty_frames(self, path: str) -> bool:
        """Return ``True`` if the first record of ``path`` is a zero-atom frame."""
        try:
            with open(path, "rb") as fh:
                self._parse_empty_record(fh)
        except (OSError, EOFError, _RecordError):
            return False
        return True

    def _read_empty_frame(self, native: _RecordStream, box):
        try:
            step, time, record_box = native.read()
        except _RecordError as exc:
            return exc.code, None
        except EOFError:
            return ErrorCode.ENDOFFILE, None
        box[...] = record_box
        return ErrorCode.OK, FrameHeader(0, step, time, None)

    # ------------------------------------------------------------------
    # Format hooks
    # ------------------------------------------------------------------

    def _precision(self, decoded) -> float | None:
        return None

    @abstractmethod
    def _read_direct(self, native: _ReadStream, positions: np.ndarray):
        """Decode the next frame with positions written into ``positions``."""
        ...

    @abstractmethod
    def _parse_empty_record(self, fh) -> tuple[int, float, np.ndarray]:
        """Decode one zero-atom record from ``fh`` as ``(step, time, box)``."""
        ...

    @abstractmethod
    def _write(self, segment, header: FrameHeader, coords: np.ndarray, box: np.ndarray) -> None:
        ...


class XTCCodec(_LibmdaxdrCodec):
    """Compressed XTC coordinates through ``libmdaxdr.XTCFile``."""

    file_class = XTCFile
    extension = ".xtc"

    def _precision(self, decoded) -> float | None:
        return float(decoded.prec)

    def _read_direct(self, native, positions):
        return native.xdr.read_direct_x(positions)

    def _parse_empty_record(self, fh):
        # magic, natoms, step, time, box, then the coordinate count again
        magic, natoms, step = _unpack_ints(fh, 3)
        if magic != _XTC_MAGIC:
            raise _RecordError(ErrorCode.MAGIC)
        if natoms != 0:
            raise _RecordError(ErrorCode.HEADER)
        time = float(_unpack(fh, ">f4")[0])
        box = _unpack(fh, ">f4", 9).reshape(3, 3)
        if _unpack_ints(fh, 1)[0] != 0:
            raise _RecordError(ErrorCode.COMPRESSED_3DX)
        return step, time, box

    def _write(self, segment, header, coords, box):
        precision = 1000.0 if header.precision is None else header.precision
        segment.write(coords, box, step_to_native(header.step), header.time, precision)


class TRRCodec(_LibmdaxdrCodec):
    """Uncompressed TRR positions through ``libmdaxdr.TRRFile``."""

    file_class = TRRFile
    extension = ".trr"

    def _read_direct(self, native, positions):
        n = positions.shape[0]
        return native.xdr.read_direct_xvf(
            positions, native.scratch_array("v", n), native.scratch_array("f", n)
        )

    def _parse_empty_record(self, fh):
        magic, _, version_length = _unpack_ints(fh, 3)
        if magic != _TRR_MAGIC:
            raise _RecordError(ErrorCode.MAGIC)
        padded = (version_length + 3) // 4 * 4
        if len(fh.read(padded)) != padded:
            raise EOFError("truncated frame record")
        (ir_size, e_size, box_size, vir_size, pres_size, top_size, sym_size,
         x_size, v_size, f_size, natoms, step, _) = _unpack_ints(fh, 13)
        if natoms != 0:
            raise _RecordError(ErrorCode.HEADER)
        # Reals are doubles when the box is stored in double precision.
        real = ">f8" if box_size == 9 * 8 else ">f4"
        time = float(_unpack(fh, real, 2)[0])
        box = np.zeros((3, 3), dtype=np.float32)
        if box_size:
            box[...] = _unpack(fh, real, 9).reshape(3, 3)
        skipped = ir_size + e_size + vir_size + pres_size + top_size + sym_size + x_size + v_size + f_size
        if len(fh.read(skipped)) != skipped:
            raise EOFError("truncated frame record")
        return step, time, box

    def _write(self, segment, header, coords, box):
        # Positions only; lambda is always written as 0.
        segment.write(
            coords, None, None, box, step_to_native(header.step), header.time, 0.0, header.num_atoms
        )
