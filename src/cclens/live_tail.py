"""Live tailing of a growing session transcript.

The engine consumes everything already written to a transcript, then wakes
on filesystem change notifications and reads only the bytes appended since.
Notifications arrive through a bounded queue fed by a background watcher
thread; everything else runs on the caller's thread, so tests can drive the
engine with a synthetic queue.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from watchfiles import Change, watch

from cclens.errors import TranscriptDecodeError, TranscriptReadError, WatchError
from cclens.transcript import (
    DEFAULT_AGENT_TOOL_NAMES,
    RecordKind,
    ToolResultBlock,
    ToolUseBlock,
    decode_record,
    extract_tool_target,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 0.5
DEFAULT_DEBOUNCE_MS = 100
DEFAULT_QUEUE_SIZE = 64
DEFAULT_SETUP_TIMEOUT = 5.0

# How often the watcher thread yields with no changes; bounds setup latency
WATCH_TICK_MS = 200

WakeQueue = queue.Queue[object]


class TailState(Enum):
    """Lifecycle states of the live tail engine."""

    BOOTSTRAPPING = "bootstrapping"
    WATCHING = "watching"
    STOPPED = "stopped"


class LiveEventKind(Enum):
    """Kinds of live presentation events."""

    USER_TURN = "user_turn"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_ERROR = "tool_error"


@dataclass(frozen=True)
class LiveEvent:
    """A presentation event for a newly appended transcript record."""

    kind: LiveEventKind
    timestamp: datetime | None = None
    tool_name: str = ""
    target: str | None = None
    invocation_id: str = ""


class FileChangeNotifier:
    """Pushes change notifications for one file into a bounded queue.

    Runs ``watchfiles.watch`` over the file's parent directory on a daemon
    thread, filtered to the target file name. Each batch of changes becomes
    one queue item; a watcher failure after startup is delivered as a
    WatchError item.
    """

    def __init__(
        self,
        path: Path,
        wakeups: WakeQueue,
        stop_event: threading.Event,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        setup_timeout: float = DEFAULT_SETUP_TIMEOUT,
        force_polling: bool = False,
    ) -> None:
        self.path = path
        self._wakeups = wakeups
        self._stop_event = stop_event
        self._debounce_ms = debounce_ms
        self._setup_timeout = setup_timeout
        self._force_polling = force_polling
        self._ready = threading.Event()
        self._error: Exception | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start watching and wait until the watch is registered.

        Raises:
            WatchError: If the watch cannot be registered in time.
        """
        self._thread = threading.Thread(target=self._run, name="cclens-notifier", daemon=True)
        self._thread.start()

        if not self._ready.wait(self._setup_timeout):
            raise WatchError(f"Timed out registering a watch on {self.path.parent}")
        if self._error is not None:
            raise WatchError(f"Cannot watch {self.path.parent}: {self._error}") from self._error
        logger.debug("Watching %s for changes", self.path)

    def stop(self, timeout: float = 2.0) -> None:
        """Signal the watcher thread to exit and wait for it briefly."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _is_target(self, _change: Change, path: str) -> bool:
        return Path(path).name == self.path.name

    def _run(self) -> None:
        try:
            for changes in watch(
                self.path.parent,
                watch_filter=self._is_target,
                debounce=self._debounce_ms,
                stop_event=self._stop_event,
                rust_timeout=WATCH_TICK_MS,
                yield_on_timeout=True,
                raise_interrupt=False,
                force_polling=True if self._force_polling else None,
                recursive=False,
            ):
                self._ready.set()
                if not changes:
                    continue
                try:
                    self._wakeups.put_nowait(changes)
                except queue.Full:
                    # A pending wake-up already covers these changes
                    logger.debug("Wake-up queue full, coalescing %d changes", len(changes))
        except Exception as e:
            self._error = e
            if self._ready.is_set():
                self._wakeups.put(WatchError(f"Watch on {self.path.parent} failed: {e}"))
        finally:
            self._ready.set()


class LiveTailEngine:
    """Tails one transcript and emits events for genuinely new records.

    States: BOOTSTRAPPING until the existing content has been consumed,
    WATCHING while appended bytes are being read, STOPPED after an IO error,
    a watch failure or cancellation.

    The resume cursor is a byte offset, kept in memory only. Tool invocations
    and results already seen (by block kind and invocation id) are never
    reported twice, so duplicate notifications for one write are harmless.
    """

    def __init__(
        self,
        path: Path,
        on_event: Callable[[LiveEvent], None],
        agent_tool_names: Collection[str] = DEFAULT_AGENT_TOOL_NAMES,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        setup_timeout: float = DEFAULT_SETUP_TIMEOUT,
        force_polling: bool = False,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.path = path
        self.state = TailState.BOOTSTRAPPING
        self.offset = 0
        self._on_event = on_event
        self._agent_tool_names = frozenset(agent_tool_names)
        self._poll_timeout = poll_timeout
        self._debounce_ms = debounce_ms
        self._queue_size = queue_size
        self._setup_timeout = setup_timeout
        self._force_polling = force_polling
        self._stop_event = stop_event or threading.Event()
        self._seen: set[tuple[str, str]] = set()

    @property
    def seen_count(self) -> int:
        """Number of distinct tool invocations and results observed."""
        return len(self._seen)

    def bootstrap(self) -> int:
        """Consume the existing file content without emitting events.

        Returns:
            The resume cursor (byte offset) reached.

        Raises:
            TranscriptReadError: If the file cannot be opened or read.
        """
        self.offset = 0
        try:
            with self.path.open("rb") as f:
                lines = self._read_complete_lines(f)
        except OSError as e:
            self.state = TailState.STOPPED
            raise TranscriptReadError(self.path, e.strerror or str(e)) from e

        for line in lines:
            self._process_line(line)
        self.state = TailState.WATCHING
        logger.debug("Bootstrapped %s at offset %d (%d tool ids)", self.path, self.offset, len(self._seen))
        return self.offset

    def poll(self) -> list[LiveEvent]:
        """Read lines appended since the last call and emit their events.

        A trailing partial line is left for the next call. If the file shrank
        below the cursor it is re-read from the start.

        Returns:
            The events emitted by this call.

        Raises:
            TranscriptReadError: If the file cannot be read; the engine stops.
        """
        if self.state is not TailState.WATCHING:
            return []

        try:
            size = self.path.stat().st_size
            if size < self.offset:
                logger.info("%s shrank below the resume cursor, re-reading from start", self.path)
                self.offset = 0
            if size == self.offset:
                return []
            with self.path.open("rb") as f:
                lines = self._read_complete_lines(f)
        except OSError as e:
            self.state = TailState.STOPPED
            raise TranscriptReadError(self.path, e.strerror or str(e)) from e

        events: list[LiveEvent] = []
        for line in lines:
            events.extend(self._process_line(line))
        for event in events:
            self._on_event(event)
        return events

    def run(self, wakeups: WakeQueue | None = None, on_ready: Callable[[], None] | None = None) -> None:
        """Bootstrap if needed, then process wake-ups until stopped.

        Once the watch is registered, ``on_ready`` is called and the file is
        polled once, so lines appended while the watch was being set up are
        reported without waiting for a later write.

        Args:
            wakeups: Queue of change notifications. When None, a
                FileChangeNotifier is started to feed one.
            on_ready: Called once the engine is watching.

        Raises:
            TranscriptReadError: If the transcript cannot be read.
            WatchError: If change notifications cannot be set up or fail.
        """
        notifier: FileChangeNotifier | None = None
        try:
            if self.state is TailState.BOOTSTRAPPING:
                self.bootstrap()
            if self.state is not TailState.WATCHING:
                return

            if wakeups is None:
                wakeups = queue.Queue(maxsize=self._queue_size)
                notifier = FileChangeNotifier(
                    self.path,
                    wakeups,
                    self._stop_event,
                    debounce_ms=self._debounce_ms,
                    setup_timeout=self._setup_timeout,
                    force_polling=self._force_polling,
                )
                notifier.start()

            if on_ready is not None:
                on_ready()
            # Catch up on writes that raced the watch registration
            self.poll()

            while not self._stop_event.is_set():
                try:
                    item = wakeups.get(timeout=self._poll_timeout)
                except queue.Empty:
                    continue
                if isinstance(item, WatchError):
                    raise item
                self.poll()
        finally:
            self.state = TailState.STOPPED
            if notifier is not None:
                notifier.stop()

    def stop(self) -> None:
        """Request shutdown; ``run`` returns within one poll timeout."""
        self._stop_event.set()

    def _read_complete_lines(self, f: BinaryIO) -> list[bytes]:
        f.seek(self.offset)
        lines: list[bytes] = []
        for line in f:
            if not line.endswith(b"\n"):
                # Still being written
                break
            self.offset += len(line)
            lines.append(line)
        return lines

    def _mark_seen(self, block_kind: str, invocation_id: str) -> bool:
        if not invocation_id:
            return True
        key = (block_kind, invocation_id)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def _process_line(self, raw: bytes) -> list[LiveEvent]:
        text = raw.decode("utf-8", errors="replace").strip()
        if not text:
            return []
        try:
            record = decode_record(text)
        except TranscriptDecodeError as e:
            logger.debug("Skipping line in %s: %s", self.path, e)
            return []

        events: list[LiveEvent] = []
        if record.kind is RecordKind.USER and not record.tool_results:
            events.append(LiveEvent(kind=LiveEventKind.USER_TURN, timestamp=record.timestamp))

        for block in record.content:
            if isinstance(block, ToolUseBlock):
                if not self._mark_seen("tool_use", block.invocation_id):
                    continue
                events.append(
                    LiveEvent(
                        kind=LiveEventKind.TOOL_INVOCATION,
                        timestamp=record.timestamp,
                        tool_name=block.tool_name or "Unknown",
                        target=extract_tool_target(block.tool_name, block.input, self._agent_tool_names),
                        invocation_id=block.invocation_id,
                    )
                )
            elif isinstance(block, ToolResultBlock):
                if not self._mark_seen("tool_result", block.invocation_id):
                    continue
                if block.is_error:
                    events.append(
                        LiveEvent(
                            kind=LiveEventKind.TOOL_ERROR,
                            timestamp=record.timestamp,
                            invocation_id=block.invocation_id,
                        )
                    )
        # Assistant free text is not reported live
        return events
