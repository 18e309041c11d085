"""Sample sources, frame sinks and the frame hand-off buffer."""

from ringscope.io.encoder import FFmpegVideoSink, FrameSink, write_all
from ringscope.io.framebuffer import FrameBuffer
from ringscope.io.source import ArraySource, FFmpegAudioSource, SampleSource, StreamSource

__all__ = [
    "ArraySource",
    "FFmpegAudioSource",
    "FFmpegVideoSink",
    "FrameBuffer",
    "FrameSink",
    "SampleSource",
    "StreamSource",
    "write_all",
]
