"""
Double-buffered hand-off between a frame producer and a byte consumer.

Two fixed buffers move between a write pool and a read queue. The
producer copies each frame into a free buffer and queues it; the consumer
streams queued frames out byte by byte and returns each exhausted buffer
to the pool. When both buffers are on the consumer side the producer
blocks; when nothing is queued the consumer blocks.
"""

import logging
import queue
import threading

from ringscope.errors import ContractViolation

logger = logging.getLogger(__name__)

BUFFER_COUNT = 2

# Queued after the last frame once the buffer is closed
_CLOSED = object()


class FrameBuffer:
    """
    Blocking frame queue for exactly one producer and one consumer thread.

    The read side behaves like a blocking binary stream: read(n) returns n
    bytes unless the buffer was closed and fully drained first.
    """

    def __init__(self, frame_size: int):
        if frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {frame_size}")
        self.frame_size = frame_size

        self._writable: queue.Queue = queue.Queue(maxsize=BUFFER_COUNT)
        # Room for every buffer plus the close marker, so put() never blocks
        self._readable: queue.Queue = queue.Queue(maxsize=BUFFER_COUNT + 1)
        for _ in range(BUFFER_COUNT):
            self._writable.put(bytearray(frame_size))

        self._lock = threading.Lock()
        self._closed = False

        # Read-side progress through the current frame
        self._current: bytearray | None = None
        self._offset = 0
        self._eof = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_frame(self, frame) -> bool:
        """
        Copy one frame into a free buffer and queue it for reading.

        Blocks while both buffers are owned by the reader.

        Args:
            frame: Bytes-like object of exactly frame_size bytes.

        Returns:
            True if the frame was queued, False if the buffer is closed and
            the frame was dropped.

        Raises:
            ContractViolation: If the frame has the wrong size.
        """
        view = memoryview(frame).cast("B")
        if view.nbytes != self.frame_size:
            raise ContractViolation(
                f"Frame of {view.nbytes} bytes written to a {self.frame_size}-byte frame buffer"
            )
        if self._closed:
            logger.debug("Dropping frame written after close")
            return False

        buf = self._writable.get()
        buf[:] = view
        with self._lock:
            if self._closed:
                self._writable.put(buf)
                logger.debug("Dropping frame written after close")
                return False
            self._readable.put(buf)
        return True

    def close(self):
        """No more frames; queued frames remain readable."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._readable.put(_CLOSED)

    def _next_frame(self) -> bool:
        item = self._readable.get()
        if item is _CLOSED:
            self._eof = True
            return False
        self._current = item
        self._offset = 0
        return True

    def readinto(self, b) -> int:
        """
        Fill b from queued frames, blocking until it is full or the stream ends.

        Returns:
            Number of bytes written into b (0 at end of stream).
        """
        out = memoryview(b).cast("B")
        wanted = out.nbytes
        n = 0
        while n < wanted:
            if self._current is None:
                if self._eof or not self._next_frame():
                    break
            chunk = min(wanted - n, len(self._current) - self._offset)
            out[n:n + chunk] = self._current[self._offset:self._offset + chunk]
            self._offset += chunk
            n += chunk
            if self._offset == len(self._current):
                self._writable.put(self._current)
                self._current = None
                self._offset = 0
        return n

    def read(self, size: int = -1) -> bytes:
        """
        Read up to size bytes; a negative size reads until the stream ends.
        """
        if size is None or size < 0:
            chunks = []
            while True:
                chunk = self.read(self.frame_size)
                if not chunk:
                    return b"".join(chunks)
                chunks.append(chunk)
        buf = bytearray(size)
        n = self.readinto(buf)
        del buf[n:]
        return bytes(buf)

    def drain(self) -> int:
        """Discard everything until the stream ends; returns bytes dropped."""
        dropped = 0
        scratch = bytearray(self.frame_size)
        while True:
            n = self.readinto(scratch)
            if not n:
                return dropped
            dropped += n
