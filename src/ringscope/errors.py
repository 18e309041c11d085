"""
Exception hierarchy for ringscope.

Contract violations are programming errors and are raised immediately.
End of stream is a signal, not a failure; it is caught by the sources'
block iterators and never reaches callers of the pipeline.
"""


class RingscopeError(Exception):
    """Base class for every error raised by ringscope."""


class ConfigError(RingscopeError, ValueError):
    """Invalid session configuration."""


class ContractViolation(RingscopeError, ValueError):
    """A block or frame of the wrong size or type was handed to a component."""


class StreamEnded(RingscopeError):
    """The upstream sample source has no more complete blocks."""


class DownstreamWriteFailure(RingscopeError, RuntimeError):
    """The frame sink refused or failed a write."""


class TranscoderError(RingscopeError, RuntimeError):
    """An external ffmpeg process exited with a non-zero status."""
