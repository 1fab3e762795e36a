"""Stream draining and multiplexing for agent processes.

Two reader functions drain a child's stdout and stderr into one packet queue;
``StreamMultiplexer`` is the single consumer that owns every capture buffer.
"""

import codecs
import logging
import queue
import sys
import time
from typing import BinaryIO, Callable, Optional, TextIO

from blueprints.constants import (
    STDERR_CHUNK_SIZE,
    STDERR_MARKER,
    STILL_RUNNING_NOTICE,
    SUMMARY_INTERVAL_SECONDS,
)
from blueprints.models.process import AggregatedOutput, PacketKind, StreamPacket, SummaryRequest
from blueprints.utils.logging import get_agent_logger

logger = logging.getLogger(__name__)
agent_logger = get_agent_logger()


def mirror_text(stream: TextIO, text: str) -> None:
    """Echo captured agent text to a console stream, ignoring write failures."""
    try:
        stream.write(text)
        stream.flush()
    except (OSError, UnicodeEncodeError, ValueError) as e:
        logger.debug(f"Could not mirror agent output: {e}")


def read_stdout(stream: BinaryIO, packets: queue.Queue) -> None:
    """Forward stdout line by line, then signal closure.

    Closure is signalled even when reading fails so the multiplexer never
    waits on a dead stream.
    """
    try:
        for raw in iter(stream.readline, b""):
            packets.put(
                StreamPacket(PacketKind.STDOUT_CHUNK, raw.decode("utf-8", errors="replace"))
            )
    finally:
        packets.put(StreamPacket(PacketKind.STDOUT_CLOSED))


def read_stderr(stream: BinaryIO, packets: queue.Queue) -> None:
    """Forward stderr in raw chunks of up to 4096 bytes, then signal closure."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        while True:
            data = stream.read1(STDERR_CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                packets.put(StreamPacket(PacketKind.STDERR_CHUNK, text))

        tail = decoder.decode(b"", final=True)
        if tail:
            packets.put(StreamPacket(PacketKind.STDERR_CHUNK, tail))
    finally:
        packets.put(StreamPacket(PacketKind.STDERR_CLOSED))


class StreamMultiplexer:
    """Reduce stream packets into an ``AggregatedOutput``.

    Verbatim mode (no ``summary_requests`` queue) mirrors every chunk to this
    process's stdout/stderr as it arrives. Summarizing mode instead buffers
    output and hands it to the summarizer every ``interval`` seconds, or emits
    a keep-alive notice when nothing new arrived. The mode is fixed for the
    lifetime of the instance.
    """

    def __init__(
        self,
        packets: queue.Queue,
        summary_requests: Optional[queue.Queue] = None,
        interval: float = SUMMARY_INTERVAL_SECONDS,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.packets = packets
        self.summary_requests = summary_requests
        self.interval = interval
        self.clock = clock
        self._stdout = stdout
        self._stderr = stderr

        self._stdout_capture: list[str] = []
        self._stderr_capture: list[str] = []
        self._last_stdout_line = ""
        self._buffer = ""
        self._stdout_closed = False
        self._stderr_closed = False

    @property
    def summarizing(self) -> bool:
        return self.summary_requests is not None

    def run(self) -> AggregatedOutput:
        """Consume packets until both streams have closed."""
        try:
            if self.summarizing:
                self._run_summarizing()
            else:
                self._run_verbatim()
        finally:
            if self.summary_requests is not None:
                # End of input for the summarizer worker
                self.summary_requests.put(None)

        return AggregatedOutput(
            stdout="".join(self._stdout_capture),
            stderr="".join(self._stderr_capture),
            last_stdout_line=self._last_stdout_line,
        )

    def _streams_open(self) -> bool:
        return not (self._stdout_closed and self._stderr_closed)

    def _run_verbatim(self) -> None:
        while self._streams_open():
            self._accept(self.packets.get())

    def _run_summarizing(self) -> None:
        last_tick = self.clock()

        while self._streams_open():
            remaining = self.interval - (self.clock() - last_tick)
            if remaining <= 0:
                self._tick()
                last_tick = self.clock()
                continue

            try:
                packet = self.packets.get(timeout=remaining)
            except queue.Empty:
                self._tick()
                last_tick = self.clock()
                continue

            self._accept(packet)

        if self._buffer.strip():
            self.summary_requests.put(SummaryRequest(self._buffer, final=True))
            self._buffer = ""

    def _tick(self) -> None:
        if self._buffer.strip():
            self.summary_requests.put(SummaryRequest(self._buffer, final=False))
            self._buffer = ""
        else:
            agent_logger.info(STILL_RUNNING_NOTICE)

    def _accept(self, packet: StreamPacket) -> None:
        if packet.kind == PacketKind.STDOUT_CHUNK:
            self._on_stdout(packet.text)
        elif packet.kind == PacketKind.STDERR_CHUNK:
            self._on_stderr(packet.text)
        elif packet.kind == PacketKind.STDOUT_CLOSED:
            self._stdout_closed = True
        elif packet.kind == PacketKind.STDERR_CLOSED:
            self._stderr_closed = True

    def _on_stdout(self, chunk: str) -> None:
        self._stdout_capture.append(chunk)
        line = chunk.rstrip("\r\n")
        if line.strip():
            self._last_stdout_line = line

        if self.summarizing:
            self._buffer += chunk
        else:
            mirror_text(self._stdout or sys.stdout, chunk)

    def _on_stderr(self, chunk: str) -> None:
        self._stderr_capture.append(chunk)

        if self.summarizing:
            if chunk.strip():
                self._buffer += STDERR_MARKER + chunk
                if not chunk.endswith("\n"):
                    self._buffer += "\n"
        else:
            mirror_text(self._stderr or sys.stderr, chunk)
