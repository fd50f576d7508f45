"""Tests for xdrtraj.codec against the libmdaxdr routines."""

import os

import numpy as np
import pytest

from xdrtraj.codec import (
    SEEK_FAILED,
    FrameHeader,
    TRRCodec,
    XTCCodec,
    status_from_exception,
)
from xdrtraj.errors import ErrorCode


@pytest.fixture(params=[XTCCodec, TRRCodec], ids=["xtc", "trr"])
def codec(request):
    return request.param()


def _write_frames(codec, path, count, num_atoms=4):
    native = codec.open(str(path), "w")
    box = np.eye(3, dtype=np.float32) * 2.0
    for step in range(count):
        coords = np.full((num_atoms, 3), step, dtype=np.float32)
        header = FrameHeader(num_atoms, step, float(step), None)
        assert codec.write_frame(native, header, coords, box) == ErrorCode.OK
    assert codec.close(native) == ErrorCode.OK


# -----------------------------------------------------------------------------
# status_from_exception
# -----------------------------------------------------------------------------
@pytest.mark.parametrize(
    "exc, code",
    [
        (StopIteration(), ErrorCode.ENDOFFILE),
        (EOFError("Trying to read last frame"), ErrorCode.ENDOFFILE),
        (OSError("XTC read error = end of file"), ErrorCode.ENDOFFILE),
        (OSError("XTC read error = magic number"), ErrorCode.MAGIC),
        (OSError("TRR read error = could not find file"), ErrorCode.FILENOTFOUND),
        (OSError("File does not exist: x.trr"), ErrorCode.FILENOTFOUND),
        (OSError("XTC read error = compressed 3D coordinate"), ErrorCode.COMPRESSED_3DX),
        (OSError("XTC write error = unsigned integer"), ErrorCode.UINT),
        (OSError("XTC write error = integer"), ErrorCode.INT),
        (OSError("TRR read error = float"), ErrorCode.FLOAT),
        (OSError("something else entirely"), ErrorCode.HEADER),
    ],
)
def test_status_from_exception(exc, code):
    assert status_from_exception(exc) is code


# -----------------------------------------------------------------------------
# Opening
# -----------------------------------------------------------------------------
def test_open_missing_file_for_reading_fails(codec, tmp_path):
    assert codec.open(str(tmp_path / "missing"), "r") is None


def test_open_unknown_mode_fails(codec, tmp_path):
    assert codec.open(str(tmp_path / "t"), "x") is None


def test_open_in_missing_directory_for_writing_fails(codec, tmp_path):
    assert codec.open(str(tmp_path / "no" / "such" / "t"), "w") is None


def test_empty_file_reads_as_end_of_file(codec, tmp_path):
    path = tmp_path / "empty"
    path.touch()
    native = codec.open(str(path), "r")
    assert native is not None
    status, header = codec.read_frame(native, np.zeros((1, 3), np.float32), np.zeros((3, 3), np.float32))
    assert status == ErrorCode.ENDOFFILE
    assert header is None
    assert codec.close(native) == ErrorCode.OK


def test_undecodable_file_fails_on_read(codec, tmp_path):
    path = tmp_path / "garbage"
    path.write_bytes(b"\0" * 999)
    native = codec.open(str(path), "r")
    assert native is not None
    status, _ = codec.read_frame(native, np.zeros((1, 3), np.float32), np.zeros((3, 3), np.float32))
    assert status not in (ErrorCode.OK, ErrorCode.ENDOFFILE)
    codec.close(native)


# -----------------------------------------------------------------------------
# Reading and writing
# -----------------------------------------------------------------------------
def test_read_frames_back(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 3)

    native = codec.open(str(path), "r")
    coords = np.zeros((4, 3), np.float32)
    box = np.zeros((3, 3), np.float32)
    steps = []
    while True:
        status, header = codec.read_frame(native, coords, box)
        if status == ErrorCode.ENDOFFILE:
            break
        assert status == ErrorCode.OK
        assert header.num_atoms == 4
        assert np.all(coords == header.step)
        steps.append(header.step)
    assert steps == [0, 1, 2]
    assert np.allclose(box, np.eye(3) * 2.0)
    codec.close(native)


def test_read_natoms(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 1, num_atoms=7)
    assert codec.read_natoms(str(path)) == (ErrorCode.OK, 7)
    assert codec.read_natoms(str(tmp_path / "missing"))[0] == ErrorCode.FILENOTFOUND


def test_buffer_too_small_is_header_error(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 1, num_atoms=4)
    native = codec.open(str(path), "r")
    status, _ = codec.read_frame(native, np.zeros((2, 3), np.float32), np.zeros((3, 3), np.float32))
    assert status == ErrorCode.HEADER
    codec.close(native)


def test_read_only_buffers_can_be_written(codec, tmp_path):
    coords = np.ones((4, 3), np.float32)
    coords.flags.writeable = False
    native = codec.open(str(tmp_path / f"t{codec.extension}"), "w")
    header = FrameHeader(4, 0, 0.0, None)
    assert codec.write_frame(native, header, coords, np.eye(3, dtype=np.float32)) == ErrorCode.OK
    codec.close(native)


def test_mode_mismatch(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 1)
    reader = codec.open(str(path), "r")
    writer = codec.open(str(tmp_path / f"u{codec.extension}"), "w")
    coords = np.zeros((4, 3), np.float32)
    box = np.zeros((3, 3), np.float32)
    assert codec.write_frame(reader, FrameHeader(4, 0, 0.0), coords, box) == ErrorCode.INT
    assert codec.read_frame(writer, coords, box)[0] == ErrorCode.ENDOFFILE
    assert codec.seek(writer, 0, os.SEEK_SET) == SEEK_FAILED
    codec.close(reader)
    codec.close(writer)


# -----------------------------------------------------------------------------
# Output segments
# -----------------------------------------------------------------------------
def test_flush_appends_to_target(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    native = codec.open(str(path), "w")
    assert path.stat().st_size == 0
    header = FrameHeader(4, 0, 0.0, None)
    coords = np.zeros((4, 3), np.float32)
    box = np.eye(3, dtype=np.float32)
    codec.write_frame(native, header, coords, box)
    written = codec.tell(native)
    assert written > 0
    assert codec.flush(native) == ErrorCode.OK
    assert path.stat().st_size == written
    assert codec.tell(native) == written
    codec.close(native)
    assert path.stat().st_size == written


def test_no_temporary_segments_left_behind(codec, tmp_path):
    _write_frames(codec, tmp_path / f"t{codec.extension}", 2)
    assert sorted(p.name for p in tmp_path.iterdir()) == [f"t{codec.extension}"]


def test_append_keeps_existing_frames(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 2)
    size = path.stat().st_size
    native = codec.open(str(path), "a")
    assert codec.tell(native) == size
    codec.write_frame(native, FrameHeader(4, 9, 9.0), np.zeros((4, 3), np.float32), np.eye(3, dtype=np.float32))
    codec.close(native)
    assert path.stat().st_size > size


# -----------------------------------------------------------------------------
# Positioning
# -----------------------------------------------------------------------------
def test_seek_and_tell_on_read_stream(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 2)
    native = codec.open(str(path), "r")
    coords = np.zeros((4, 3), np.float32)
    box = np.zeros((3, 3), np.float32)
    assert codec.tell(native) == 0
    codec.read_frame(native, coords, box)
    after_first = codec.tell(native)
    assert after_first > 0

    assert codec.seek(native, 0, os.SEEK_SET) == ErrorCode.OK
    status, header = codec.read_frame(native, coords, box)
    assert status == ErrorCode.OK
    assert header.step == 0

    assert codec.seek(native, after_first, os.SEEK_SET) == ErrorCode.OK
    assert codec.read_frame(native, coords, box)[1].step == 1
    codec.close(native)


def test_zero_atom_records(codec, tmp_path):
    path = tmp_path / f"t{codec.extension}"
    _write_frames(codec, path, 2, num_atoms=0)
    assert codec.read_natoms(str(path)) == (ErrorCode.OK, 0)

    native = codec.open(str(path), "r")
    coords = np.zeros((0, 3), np.float32)
    box = np.zeros((3, 3), np.float32)
    status, header = codec.read_frame(native, coords, box)
    assert status == ErrorCode.OK
    assert (header.num_atoms, header.step, header.time) == (0, 0, 0.0)
    assert np.allclose(box, np.eye(3) * 2.0)
    after_first = codec.tell(native)
    assert codec.read_frame(native, coords, box)[1].step == 1
    assert codec.read_frame(native, coords, box)[0] == ErrorCode.ENDOFFILE

    assert codec.seek(native, after_first, os.SEEK_SET) == ErrorCode.OK
    assert codec.read_frame(native, coords, box)[1].step == 1
    assert codec.close(native) == ErrorCode.OK
