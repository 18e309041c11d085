"""
Main rendering pipeline.

Orchestrates the flow from sample blocks to encoded frames:
analysis, history update, ring composition, and the hand-off to the sink.
"""

import itertools
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterator, Union

import numpy as np
from PIL import Image

from ringscope.config import DEFAULT_OUTPUT, RingConfig
from ringscope.core.analyzer import SpectralAnalyzer
from ringscope.core.history import SpectrumHistory
from ringscope.errors import ConfigError, DownstreamWriteFailure
from ringscope.io.encoder import FFmpegVideoSink, FrameSink
from ringscope.io.framebuffer import FrameBuffer
from ringscope.io.source import ArraySource, FFmpegAudioSource, SampleSource
from ringscope.visualizers.spectrum_ring import PathComposer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int | None], None]

DECODERS = ("ffmpeg", "librosa")


class SpectrumPipeline:
    """
    Complete samples-to-frames pipeline.

    One sample block in, one composited RGBA frame out. The analyzer,
    history and composer all reuse their buffers across frames.
    """

    def __init__(self, config: RingConfig | None = None):
        """
        Initialize the pipeline.

        Args:
            config: Session configuration. Uses defaults if None.
        """
        self.config = (config or RingConfig()).validate()
        self.analyzer = SpectralAnalyzer(
            self.config.samples_per_frame,
            window=self.config.window,
        )
        self.history = SpectrumHistory(self.config.styles)
        self.composer = PathComposer(self.config)

    @property
    def frame_index(self) -> int:
        return self.history.frame_index

    def process_block(self, block: np.ndarray) -> Image.Image:
        """
        Analyze one block and draw the frame for it.

        The block is windowed in place. The returned image is the
        composer's canvas and is redrawn by the next call.
        """
        spectrum = self.analyzer.analyze(block)
        self.history.advance(spectrum)
        return self.composer.compose(self.history)

    def frames(self, source: SampleSource, max_frames: int | None = None) -> Iterator[Image.Image]:
        """Yield one composed frame per block until the source ends."""
        if max_frames is not None and max_frames < 0:
            raise ConfigError(f"max_frames must be >= 0, got {max_frames}")
        for block in itertools.islice(source.blocks(), max_frames):
            yield self.process_block(block)

    def run(
        self,
        source: SampleSource,
        sink: FrameSink,
        max_frames: int | None = None,
        progress_callback: ProgressCallback | None = None,
        total_frames: int | None = None,
    ) -> int:
        """
        Render every block of the source into the sink.

        Frames are produced on the calling thread and handed to a consumer
        thread through a FrameBuffer, so encoding overlaps rendering.

        Args:
            source: Sample block source.
            sink: Frame sink (e.g. an ffmpeg encoder).
            max_frames: Stop after this many frames.
            progress_callback: Optional callback(current_frame, total_frames).
            total_frames: Expected frame count for progress reporting.

        Returns:
            Number of frames produced.

        Raises:
            DownstreamWriteFailure: If the sink fails; no further input is read.
                Any other error raised in the sink thread is re-raised the
                same way.
        """
        buffer = FrameBuffer(self.config.frame_size)
        failures: list[BaseException] = []

        def consume():
            try:
                sink.pump(buffer)
            except BaseException as e:
                # Re-raised by the producer once the consumer has been joined
                failures.append(e)
                logger.debug("Sink thread failed: %r", e)
                # Keep the producer from blocking on a full buffer
                buffer.drain()

        consumer = threading.Thread(target=consume, name="ringscope-sink", daemon=True)
        consumer.start()

        produced = 0
        try:
            for image in self.frames(source, max_frames=max_frames):
                if failures:
                    break
                buffer.write_frame(image.tobytes())
                produced += 1
                if progress_callback:
                    progress_callback(produced, total_frames)
        finally:
            buffer.close()
            consumer.join()

        if failures:
            raise failures[0]
        logger.debug("Produced %d frames", produced)
        return produced

    def open_source(self, audio_path: Union[str, Path], decoder: str = "ffmpeg") -> SampleSource:
        """Create a sample source for an audio file with the chosen decoder."""
        n = self.config.samples_per_frame
        if decoder == "ffmpeg":
            return FFmpegAudioSource(audio_path, n, ffmpeg_path=self.config.ffmpeg_path)
        if decoder == "librosa":
            return ArraySource.from_file(audio_path, n)
        raise ConfigError(f"Unknown decoder {decoder!r} (expected one of: {', '.join(DECODERS)})")

    def render(
        self,
        audio_path: Union[str, Path],
        output_path: Union[str, Path] = DEFAULT_OUTPUT,
        decoder: str = "ffmpeg",
        max_duration: float | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """
        Render an audio file to a video file.

        Args:
            audio_path: Input audio file.
            output_path: Output video path.
            decoder: "ffmpeg" (external process) or "librosa" (in-process).
            max_duration: Limit output to this many seconds.
            progress_callback: Optional callback(current_frame, total_frames).

        Returns:
            Dictionary with frames, fps, duration and output_path.

        Raises:
            ConfigError: If max_duration is not positive.
        """
        audio_path = Path(audio_path)
        if max_duration is not None and max_duration <= 0:
            raise ConfigError(f"max_duration must be positive, got {max_duration}")
        fps = self.config.fps
        max_frames = int(max_duration * fps) if max_duration is not None else None

        logger.info(
            "Rendering %s at %dx%d @ %dfps",
            audio_path,
            self.config.width,
            self.config.height,
            fps,
        )

        source = self.open_source(audio_path, decoder)
        total_frames = getattr(source, "n_blocks", None)
        if total_frames is not None and max_frames is not None:
            total_frames = min(total_frames, max_frames)

        with source:
            sink = FFmpegVideoSink(self.config, audio_path, output_path)
            try:
                produced = self.run(
                    source,
                    sink,
                    max_frames=max_frames,
                    progress_callback=progress_callback,
                    total_frames=total_frames,
                )
            except BaseException:
                sink.abort()
                raise
            written = sink.finish()

        return {
            "frames": produced,
            "fps": fps,
            "duration": produced / fps,
            "output_path": str(written),
        }
