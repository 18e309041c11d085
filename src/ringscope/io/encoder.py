"""
Frame sinks.

Raw RGBA frames are written to a byte stream, normally the stdin of an
ffmpeg process that encodes them and muxes the source audio back in.
Partial writes are retried until the whole frame is out.
"""

import logging
import subprocess
from pathlib import Path
from typing import BinaryIO, Union

from ringscope.config import RingConfig
from ringscope.errors import ContractViolation, DownstreamWriteFailure, TranscoderError
from ringscope.io.framebuffer import FrameBuffer

logger = logging.getLogger(__name__)


def write_all(stream: BinaryIO, data) -> int:
    """
    Write every byte of data, retrying partial writes.

    Returns:
        Number of bytes written.

    Raises:
        DownstreamWriteFailure: If the stream errors or stops accepting bytes.
    """
    view = memoryview(data).cast("B")
    total = view.nbytes
    written = 0
    while written < total:
        try:
            n = stream.write(view[written:])
        except (OSError, ValueError) as e:
            # ValueError: write to a closed file object
            raise DownstreamWriteFailure(
                f"Write failed after {written} of {total} bytes: {e}"
            ) from e
        if n is None:
            # File-likes that return None have written everything
            n = total - written
        if n <= 0:
            raise DownstreamWriteFailure(
                f"Sink accepted no bytes after {written} of {total}"
            )
        written += n
    return written


class FrameSink:
    """Writes fixed-size frames to a binary stream."""

    def __init__(self, stream: BinaryIO, frame_size: int):
        self.stream = stream
        self.frame_size = frame_size
        self.frames_written = 0

    def send_frame(self, frame):
        """
        Write one whole frame.

        Raises:
            ContractViolation: If the frame has the wrong size.
            DownstreamWriteFailure: If the stream fails.
        """
        view = memoryview(frame).cast("B")
        if view.nbytes != self.frame_size:
            raise ContractViolation(
                f"Frame of {view.nbytes} bytes sent to a {self.frame_size}-byte sink"
            )
        write_all(self.stream, view)
        self.frames_written += 1

    def pump(self, buffer: FrameBuffer) -> int:
        """
        Copy frames from a frame buffer until it is closed and drained.

        Returns:
            Number of frames written.
        """
        chunk = bytearray(self.frame_size)
        while True:
            n = buffer.readinto(chunk)
            if not n:
                return self.frames_written
            if n != self.frame_size:
                raise ContractViolation(f"Frame buffer ended inside a frame ({n} bytes)")
            self.send_frame(chunk)

    def finish(self):
        self.stream.flush()


def build_encoder_command(
    config: RingConfig,
    audio_path: Union[str, Path],
    output_path: Union[str, Path],
) -> list[str]:
    """ffmpeg arguments that encode RGBA frames from stdin alongside the source audio."""
    cmd = [
        config.ffmpeg_path,
        "-loglevel", "error",
        # Audio input
        "-i", str(audio_path),
        # Raw video input from pipe
        "-thread_queue_size", "32",
        "-f", "rawvideo",
        "-pix_fmt", "rgba",
        "-s", f"{config.width}x{config.height}",
        "-r", str(config.fps),
        "-i", "-",
    ]
    cmd += ["-c:v", *config.video_codec]
    cmd += ["-c:a", *config.audio_codec]
    cmd += ["-y", str(output_path)]
    return cmd


class FFmpegVideoSink(FrameSink):
    """Encodes frames with an ffmpeg child process."""

    def __init__(
        self,
        config: RingConfig,
        audio_path: Union[str, Path],
        output_path: Union[str, Path],
    ):
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.cmd = build_encoder_command(config, audio_path, self.output_path)
        logger.debug("Starting encoder: %s", " ".join(self.cmd))
        # Unbuffered so write() reports partial writes; errors go to our stderr
        self.proc = subprocess.Popen(
            self.cmd,
            stdin=subprocess.PIPE,
            bufsize=0,
        )
        super().__init__(self.proc.stdin, config.frame_size)

    def finish(self):
        """
        Close stdin and wait for the encoder.

        Raises:
            TranscoderError: If ffmpeg exited with a non-zero status.
        """
        try:
            self.proc.stdin.close()
        except BrokenPipeError:
            logger.debug("Encoder closed its input early")
        returncode = self.proc.wait()
        if returncode != 0:
            raise TranscoderError(f"ffmpeg encoder exited with code {returncode}")
        logger.info("Wrote %d frames to %s", self.frames_written, self.output_path)
        return self.output_path

    def abort(self):
        """Stop the encoder without waiting for a clean exit."""
        if self.proc.poll() is None:
            self.proc.kill()
        self.proc.wait()
