"""Tests for sample sources."""

import io
import stat
import struct
import sys
import threading

import numpy as np
import pytest

from ringscope.io.source import (
    ArraySource,
    FFmpegAudioSource,
    StreamSource,
    build_decoder_command,
    decode_samples,
)
from ringscope.errors import TranscoderError


def encode(samples) -> bytes:
    return b"".join(struct.pack(">d", s) for s in samples)


class ChunkyStream(io.RawIOBase):
    """Returns at most `chunk` bytes per read."""

    def __init__(self, data: bytes, chunk: int):
        self._data = io.BytesIO(data)
        self.chunk = chunk

    def readable(self):
        return True

    def readinto(self, b):
        view = memoryview(b)
        data = self._data.read(min(len(view), self.chunk))
        view[:len(data)] = data
        return len(data)


class ReadOnlyStream:
    """Minimal stream with read() and no readinto()."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)

    def read(self, n):
        return self._data.read(n)


class TestDecodeSamples:
    def test_big_endian_doubles(self):
        values = [0.0, 1.5, -2.25, 1e-300]
        decoded = decode_samples(encode(values))

        assert decoded.dtype == np.float64
        assert decoded.dtype.isnative
        np.testing.assert_array_equal(decoded, values)


class TestStreamSource:
    """Tests for StreamSource."""

    def test_full_blocks_then_end(self):
        n = 4
        samples = np.arange(10, dtype=np.float64)
        source = StreamSource(io.BytesIO(encode(samples)), n)

        blocks = [b.copy() for b in source.blocks()]

        # 2.5 blocks of input: the partial tail ends the stream
        assert len(blocks) == 2
        np.testing.assert_array_equal(blocks[0], [0, 1, 2, 3])
        np.testing.assert_array_equal(blocks[1], [4, 5, 6, 7])
        assert source.blocks_read == 2

    def test_block_array_is_reused(self):
        source = StreamSource(io.BytesIO(encode(range(8))), 4)
        first = source.read_block()
        second = source.read_block()

        assert first is second
        np.testing.assert_array_equal(second, [4, 5, 6, 7])

    def test_short_reads_are_retried(self):
        samples = np.linspace(-1, 1, 12)
        stream = ChunkyStream(encode(samples), chunk=5)
        source = StreamSource(stream, 6)

        blocks = [b.copy() for b in source.blocks()]

        assert len(blocks) == 2
        np.testing.assert_array_equal(np.concatenate(blocks), samples)

    def test_stream_without_readinto(self):
        source = StreamSource(ReadOnlyStream(encode([1.0, 2.0, 3.0])), 3)
        np.testing.assert_array_equal(source.read_block(), [1.0, 2.0, 3.0])

    def test_empty_stream(self):
        source = StreamSource(io.BytesIO(b""), 4)
        assert list(source.blocks()) == []


class TestArraySource:
    """Tests for in-memory sources."""

    def test_partial_tail_dropped(self):
        source = ArraySource(np.arange(10.0), 4)

        assert source.n_blocks == 2
        assert len([b.copy() for b in source.blocks()]) == 2

    def test_rejects_multichannel(self):
        with pytest.raises(ValueError):
            ArraySource(np.zeros((2, 100)), 10)

    def test_duration(self, sample_rate):
        source = ArraySource(np.zeros(sample_rate // 2), 100)
        assert source.duration == pytest.approx(0.5)

    def test_from_file(self, temp_audio_file, samples_per_frame):
        source = ArraySource.from_file(temp_audio_file, samples_per_frame)

        assert source.duration == pytest.approx(1.0, abs=0.01)
        assert source.n_blocks == 30
        block = source.read_block()
        assert block.shape == (samples_per_frame,)
        assert np.abs(block).max() == pytest.approx(0.5, abs=0.01)


class TestFFmpegSource:
    """Tests for the ffmpeg decoder source."""

    def test_decoder_command(self):
        cmd = build_decoder_command("in.mp3", "/opt/ffmpeg")

        assert cmd[0] == "/opt/ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "in.mp3"
        assert cmd[cmd.index("-ar") + 1] == "44100"
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-f") + 1] == "f64be"
        assert cmd[-1] == "-"

    def test_decode_file(self, temp_audio_file, samples_per_frame, ffmpeg_path):
        with FFmpegAudioSource(temp_audio_file, samples_per_frame, ffmpeg_path) as source:
            count = 0
            peak = 0.0
            for block in source.blocks():
                count += 1
                peak = max(peak, float(np.abs(block).max()))

        assert count == 30
        assert peak == pytest.approx(0.5, abs=0.01)

    def test_close_before_end(self, temp_audio_file, samples_per_frame, ffmpeg_path):
        with FFmpegAudioSource(temp_audio_file, samples_per_frame, ffmpeg_path) as source:
            source.read_block()
        assert source.proc.returncode is not None


@pytest.fixture
def fake_decoder(tmp_path):
    """
    Factory for stand-in decoder executables.

    Returns:
        Callable(stdout_bytes, stderr_bytes=0, exit_code=0) -> script path.
        The script ignores its arguments, writes the requested number of
        zero bytes to stdout and 'x' bytes to stderr, then exits.
    """
    if sys.platform == "win32":
        pytest.skip("needs a POSIX shell")

    def _make(stdout_bytes: int, stderr_bytes: int = 0, exit_code: int = 0) -> str:
        script = tmp_path / "fake-ffmpeg"
        script.write_text(
            "#!/bin/sh\n"
            f"head -c {stderr_bytes} /dev/zero | tr '\\0' 'x' >&2\n"
            f"head -c {stdout_bytes} /dev/zero\n"
            f"exit {exit_code}\n"
        )
        script.chmod(script.stat().st_mode | stat.S_IEXEC)
        return str(script)

    return _make


class TestDecoderProcess:
    """FFmpegAudioSource against a scripted decoder."""

    def test_verbose_stderr_does_not_stall(self, fake_decoder, samples_per_frame):
        decoder = fake_decoder(3 * samples_per_frame * 8, stderr_bytes=200_000)
        counts = []

        def consume():
            with FFmpegAudioSource("in.mp3", samples_per_frame, ffmpeg_path=decoder) as source:
                counts.append(sum(1 for _ in source.blocks()))

        t = threading.Thread(target=consume, daemon=True)
        t.start()
        t.join(10.0)

        assert not t.is_alive()
        assert counts == [3]

    def test_failed_exit_raises(self, fake_decoder, samples_per_frame):
        decoder = fake_decoder(samples_per_frame * 8, exit_code=3)

        with pytest.raises(TranscoderError, match="code 3"):
            with FFmpegAudioSource("in.mp3", samples_per_frame, ffmpeg_path=decoder) as source:
                assert sum(1 for _ in source.blocks()) == 1

    def test_failed_exit_keeps_pending_error(self, fake_decoder, samples_per_frame):
        decoder = fake_decoder(samples_per_frame * 8, exit_code=3)

        with pytest.raises(KeyError, match="render failed"):
            with FFmpegAudioSource("in.mp3", samples_per_frame, ffmpeg_path=decoder) as source:
                for _ in source.blocks():
                    pass
                raise KeyError("render failed")

        assert source.proc.returncode == 3
