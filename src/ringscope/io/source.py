"""
Sample sources.

Upstream audio arrives as big-endian float64 mono samples at 44.1 kHz,
normally from an ffmpeg process. Sources cut it into blocks of exactly
samples_per_frame samples; a short final read ends the stream.
"""

import logging
import subprocess
from pathlib import Path
from typing import BinaryIO, Iterator, Union

import librosa
import numpy as np

from ringscope.config import BYTES_PER_SAMPLE, SAMPLE_RATE
from ringscope.errors import StreamEnded, TranscoderError

logger = logging.getLogger(__name__)

SAMPLE_DTYPE = np.dtype(">f8")


def decode_samples(data: bytes) -> np.ndarray:
    """Big-endian float64 bytes to a native float64 array."""
    return np.frombuffer(data, dtype=SAMPLE_DTYPE).astype(np.float64)


class SampleSource:
    """
    Base class for block sources.

    Blocks are handed out as one reused array. Analysis windows it in
    place, and the next read_block() refills it.
    """

    def __init__(self, samples_per_frame: int):
        self.samples_per_frame = samples_per_frame
        self.block = np.zeros(samples_per_frame, dtype=np.float64)
        self.blocks_read = 0

    def read_block(self) -> np.ndarray:
        """
        Fill and return the next block.

        Raises:
            StreamEnded: If fewer than samples_per_frame samples remain.
        """
        raise NotImplementedError

    def blocks(self) -> Iterator[np.ndarray]:
        """Yield blocks until the stream ends."""
        while True:
            try:
                block = self.read_block()
            except StreamEnded:
                logger.debug("Sample stream ended after %d blocks", self.blocks_read)
                return
            yield block

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class StreamSource(SampleSource):
    """Reads blocks from a binary stream of big-endian float64 samples."""

    def __init__(self, stream: BinaryIO, samples_per_frame: int):
        super().__init__(samples_per_frame)
        self.stream = stream
        self._raw = bytearray(samples_per_frame * BYTES_PER_SAMPLE)
        self._raw_view = memoryview(self._raw)

    def _read_full(self) -> int:
        """Read until the raw buffer is full or the stream is exhausted."""
        n = 0
        total = len(self._raw)
        while n < total:
            if hasattr(self.stream, "readinto"):
                got = self.stream.readinto(self._raw_view[n:])
            else:
                data = self.stream.read(total - n)
                got = len(data)
                self._raw_view[n:n + got] = data
            if not got:
                break
            n += got
        return n

    def read_block(self) -> np.ndarray:
        n = self._read_full()
        if n < len(self._raw):
            raise StreamEnded(f"Short read of {n} bytes after {self.blocks_read} blocks")
        self.block[:] = decode_samples(self._raw)
        self.blocks_read += 1
        return self.block


def build_decoder_command(audio_path: Union[str, Path], ffmpeg_path: str = "ffmpeg") -> list[str]:
    """ffmpeg arguments that decode any input to raw f64be mono at 44.1 kHz on stdout."""
    return [
        ffmpeg_path,
        "-loglevel", "error",
        "-i", str(audio_path),
        "-vn",
        "-ar", str(SAMPLE_RATE),
        "-ac", "1",
        "-f", "f64be",
        "-c:a", "pcm_f64be",
        "-",
    ]


class FFmpegAudioSource(StreamSource):
    """
    Decodes an audio file with an ffmpeg child process.

    The decoder writes its messages straight to our stderr.
    """

    def __init__(
        self,
        audio_path: Union[str, Path],
        samples_per_frame: int,
        ffmpeg_path: str = "ffmpeg",
    ):
        self.audio_path = Path(audio_path)
        self.cmd = build_decoder_command(self.audio_path, ffmpeg_path)
        logger.debug("Starting decoder: %s", " ".join(self.cmd))
        self.proc = subprocess.Popen(
            self.cmd,
            stdout=subprocess.PIPE,
        )
        super().__init__(self.proc.stdout, samples_per_frame)
        self.exhausted = False

    def read_block(self) -> np.ndarray:
        try:
            return super().read_block()
        except StreamEnded:
            self.exhausted = True
            raise

    def close(self, check_status: bool = True):
        """
        Wait for the decoder to exit.

        A decoder stopped before the end of its input is terminated
        without error.

        Args:
            check_status: Raise on a failed decoder exit. Off while another
                exception is already propagating.

        Raises:
            TranscoderError: If ffmpeg exited with a non-zero status after
                the whole stream was read.
        """
        if not self.exhausted and self.proc.poll() is None:
            logger.debug("Stopping decoder before end of input")
            self.proc.terminate()
        self.proc.stdout.close()
        returncode = self.proc.wait()
        if self.exhausted and returncode != 0:
            if not check_status:
                logger.warning("ffmpeg decoder exited with code %d", returncode)
                return
            raise TranscoderError(f"ffmpeg decoder exited with code {returncode}")

    def __exit__(self, exc_type, exc, tb):
        self.close(check_status=exc_type is None)


class ArraySource(SampleSource):
    """Serves blocks from samples already in memory."""

    def __init__(self, samples: np.ndarray, samples_per_frame: int):
        super().__init__(samples_per_frame)
        self.samples = np.asarray(samples, dtype=np.float64)
        if self.samples.ndim != 1:
            raise ValueError(f"Expected mono samples, got shape {self.samples.shape}")
        self._position = 0

    @property
    def duration(self) -> float:
        return len(self.samples) / SAMPLE_RATE

    @property
    def n_blocks(self) -> int:
        return len(self.samples) // self.samples_per_frame

    @classmethod
    def from_file(cls, audio_path: Union[str, Path], samples_per_frame: int) -> "ArraySource":
        """
        Load an audio file in-process with librosa, resampled to 44.1 kHz mono.
        """
        logger.info("Loading audio: %s", audio_path)
        y, _ = librosa.load(audio_path, sr=SAMPLE_RATE, mono=True)
        return cls(y, samples_per_frame)

    def read_block(self) -> np.ndarray:
        end = self._position + self.samples_per_frame
        if end > len(self.samples):
            raise StreamEnded(
                f"{len(self.samples) - self._position} samples left after {self.blocks_read} blocks"
            )
        self.block[:] = self.samples[self._position:end]
        self._position = end
        self.blocks_read += 1
        return self.block
