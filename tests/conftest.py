"""Shared fixtures for unit tests."""

import numpy as np
import pytest

from xdrtraj import Frame, TRRTrajectory, XTCTrajectory
from xdrtraj.codec import SEEK_FAILED, Codec, FrameHeader
from xdrtraj.errors import ErrorCode
from xdrtraj.frame import step_to_native


class FakeStream:
    """Native handle of :class:`FakeCodec`; the position is a frame index."""
    def __init__(self, mode):
        self.mode = mode
        self.position = 0
        self.closed = False


class FakeCodec(Codec):
    """In-memory codec with configurable failures.

    Every frame occupies ``FRAME_BYTES`` bytes, so byte offsets map to frame
    indices.
    """

    FRAME_BYTES = 100

    def __init__(self, frames=(), *, num_atoms=None, natoms_status=ErrorCode.OK,
                 read_errors=None, flush_status=ErrorCode.OK, fail_open=False):
        self.frames = [frame.copy() for frame in frames]
        if num_atoms is None:
            num_atoms = self.frames[0].num_atoms if self.frames else 0
        self.num_atoms = num_atoms
        self.natoms_status = natoms_status
        self.read_errors = dict(read_errors or {})
        self.flush_status = flush_status
        self.fail_open = fail_open

        self.natoms_calls = 0
        self.read_calls = 0
        self.headers = []
        self.streams = []

    def open(self, path, mode):
        if self.fail_open:
            return None
        stream = FakeStream(mode)
        if mode == "w":
            self.frames = []
        self.streams.append(stream)
        return stream

    def close(self, native):
        native.closed = True
        return ErrorCode.OK

    def read_frame(self, native, coords, box):
        self.read_calls += 1
        index = native.position
        if index in self.read_errors:
            return self.read_errors[index], None
        if index >= len(self.frames):
            return ErrorCode.ENDOFFILE, None
        source = self.frames[index]
        n = source.num_atoms
        if n > coords.shape[0]:
            return ErrorCode.HEADER, None
        coords[:n] = source.coords
        box[...] = source.box_vector
        native.position += 1
        return ErrorCode.OK, FrameHeader(n, step_to_native(source.step), source.time, None)

    def write_frame(self, native, header, coords, box):
        self.headers.append(header)
        self.frames.append(Frame(step=header.step, time=header.time, box_vector=box, coords=coords))
        return ErrorCode.OK

    def read_natoms(self, path):
        self.natoms_calls += 1
        return self.natoms_status, self.num_atoms

    def seek(self, native, offset, whence):
        base = {0: 0, 1: native.position * self.FRAME_BYTES, 2: len(self.frames) * self.FRAME_BYTES}[whence]
        target = base + offset
        if target < 0 or target % self.FRAME_BYTES:
            return SEEK_FAILED
        native.position = target // self.FRAME_BYTES
        return ErrorCode.OK

    def tell(self, native):
        return native.position * self.FRAME_BYTES

    def flush(self, native):
        return self.flush_status


class PrecisionCodec(FakeCodec):
    """Fake codec that reports a fixed precision for every frame."""

    precision = 250.0

    def read_frame(self, native, coords, box):
        status, header = super().read_frame(native, coords, box)
        if header is not None:
            header = header._replace(precision=self.precision)
        return status, header


def make_frames(count, num_atoms=3, first_step=1):
    """Frames with increasing steps and coordinates derived from the step."""
    frames = []
    for i in range(count):
        step = first_step + i
        coords = np.arange(num_atoms * 3, dtype=np.float32).reshape(num_atoms, 3) + step
        frames.append(Frame(step=step, time=0.5 * step, box_vector=np.eye(3) * 3.0, coords=coords))
    return frames


def write_trajectory(cls, path, frames):
    with cls.open_write(path) as trj:
        for frame in frames:
            trj.write(frame)
    return path


@pytest.fixture
def fake_codec():
    """Fake codec holding five 3-atom frames with steps 1..5."""
    return FakeCodec(make_frames(5))


@pytest.fixture
def fake_trajectory(fake_codec):
    """XTC trajectory opened for reading through the fake codec."""
    trj = XTCTrajectory.open_read("fake.xtc", codec=fake_codec)
    yield trj
    trj.close()


@pytest.fixture(params=[XTCTrajectory, TRRTrajectory], ids=["xtc", "trr"])
def trajectory_class(request):
    """Each concrete trajectory format."""
    return request.param


@pytest.fixture
def trajectory_38(tmp_path, trajectory_class):
    """A 38-frame, 304-atom trajectory with steps 1..38 in each format."""
    rng = np.random.default_rng(1234)
    frames = []
    for step in range(1, 39):
        coords = rng.uniform(0.0, 5.0, size=(304, 3)).astype(np.float32)
        frames.append(Frame(step=step, time=float(step), box_vector=np.eye(3) * 5.0, coords=coords))
    suffix = ".xtc" if trajectory_class is XTCTrajectory else ".trr"
    path = write_trajectory(trajectory_class, tmp_path / f"1l2y{suffix}", frames)
    return trajectory_class, path
