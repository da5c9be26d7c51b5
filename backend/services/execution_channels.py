"""
Execution output channels

ARCHITECTURE NOTE: per-execution broadcast with single-assignment completion
- One channel per execution id, created by whichever side arrives first
  (the stream subscriber or the execution itself)
- Events are kept in order so a subscriber that connects late still sees
  everything published so far
- Each subscriber gets its own bounded queue; a slow subscriber loses output
  chunks (logged) but never the terminal event
- complete/fail/cancel are terminal writes and only the first one counts
- A channel whose execution never starts closes with an error after
  CHANNEL_START_TIMEOUT_SECONDS
"""
import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Set

from constants import ExecutionConfig, StreamEventType

logger = logging.getLogger(__name__)


class ExecutionChannel:
    """Ordered event stream for one execution."""

    def __init__(self, execution_id: str, start_timeout: float = ExecutionConfig.CHANNEL_START_TIMEOUT_SECONDS):
        self.execution_id = execution_id
        self.created_at = datetime.now(timezone.utc)
        self.start_timeout = start_timeout
        self.started = False
        self.history: List[dict] = []
        self.terminal_event: Optional[dict] = None
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def closed(self) -> bool:
        return self.terminal_event is not None

    def mark_started(self):
        self.started = True

    def seconds_until_expiry(self) -> float:
        age = (datetime.now(timezone.utc) - self.created_at).total_seconds()
        return max(self.start_timeout - age, 0.0)

    def expire(self) -> bool:
        """Close an open channel whose execution never started."""
        if self.started or self.closed:
            return False
        logger.warning(f"Execution {self.execution_id} never started, closing its stream")
        return self.fail("Execution was never started")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self, event: dict):
        self.history.append(event)
        terminal = event["type"] in StreamEventType.terminal()
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                if not terminal:
                    logger.warning(f"Subscriber queue full for execution {self.execution_id}, dropping output")
                    continue
                # Make room: the terminal event must always be delivered
                queue.get_nowait()
                queue.put_nowait(event)

    def publish_output(self, stream: str, text: str) -> bool:
        """Publish an output chunk. Ignored once the channel is closed."""
        if self.closed:
            return False
        self._publish({"type": StreamEventType.OUTPUT.value, "stream": stream, "data": text})
        return True

    def _finish(self, event: dict) -> bool:
        if self.closed:
            logger.debug(
                f"Ignoring {event['type']} for execution {self.execution_id}: "
                f"already {self.terminal_event['type']}"
            )
            return False
        self.terminal_event = event
        self._publish(event)
        return True

    def complete(self, output_file: Optional[str] = None, output_size: Optional[int] = None) -> bool:
        return self._finish({
            "type": StreamEventType.COMPLETE.value,
            "success": True,
            "outputFile": output_file,
            "outputSize": output_size,
        })

    def fail(self, message: str, stderr: str = "", stdout: str = "", timed_out: bool = False) -> bool:
        return self._finish({
            "type": StreamEventType.ERROR.value,
            "message": message,
            "stderr": stderr,
            "stdout": stdout,
            "timedOut": timed_out,
        })

    def cancel(self, message: str = "Execution was cancelled") -> bool:
        return self._finish({"type": StreamEventType.CANCELLED.value, "message": message})

    async def subscribe(self) -> AsyncIterator[dict]:
        """
        Yield every event of this execution, past and future, ending after
        the terminal event.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=ExecutionConfig.SUBSCRIBER_QUEUE_SIZE)
        # Snapshot and registration happen without yielding, so nothing is missed
        backlog = list(self.history)
        if not self.closed:
            self._subscribers.add(queue)
        try:
            for event in backlog:
                yield event
                if event["type"] in StreamEventType.terminal():
                    return
            while True:
                if self.started or self.closed:
                    event = await queue.get()
                else:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=self.seconds_until_expiry())
                    except asyncio.TimeoutError:
                        self.expire()
                        continue
                yield event
                if event["type"] in StreamEventType.terminal():
                    return
        finally:
            self._subscribers.discard(queue)


class ChannelRegistry:
    """Execution id -> channel, keeping a bounded number of finished channels."""

    def __init__(
        self,
        max_closed: int = ExecutionConfig.MAX_CLOSED_CHANNELS,
        start_timeout: float = ExecutionConfig.CHANNEL_START_TIMEOUT_SECONDS,
    ):
        self._channels: "OrderedDict[str, ExecutionChannel]" = OrderedDict()
        self.max_closed = max_closed
        self.start_timeout = start_timeout

    def get(self, execution_id: str) -> Optional[ExecutionChannel]:
        return self._channels.get(execution_id)

    def get_or_create(self, execution_id: str) -> ExecutionChannel:
        channel = self._channels.get(execution_id)
        if channel is None:
            self._prune()
            channel = ExecutionChannel(execution_id, start_timeout=self.start_timeout)
            self._channels[execution_id] = channel
        return channel

    def reset(self, execution_id: str) -> ExecutionChannel:
        """Replace a finished channel so a reused id starts clean, and mark it started."""
        channel = self._channels.get(execution_id)
        if channel is not None and channel.closed:
            del self._channels[execution_id]
        channel = self.get_or_create(execution_id)
        channel.mark_started()
        return channel

    def _prune(self):
        # Unstarted channels nobody is reading are dropped once their start window passes
        for execution_id, channel in list(self._channels.items()):
            if (
                not channel.started
                and not channel.closed
                and channel.subscriber_count == 0
                and channel.seconds_until_expiry() == 0
            ):
                channel.expire()
                del self._channels[execution_id]

        closed_ids = [eid for eid, channel in self._channels.items() if channel.closed]
        excess = len(closed_ids) - self.max_closed
        for execution_id in closed_ids[:max(excess, 0)]:
            del self._channels[execution_id]

    def __len__(self) -> int:
        return len(self._channels)

    def stats(self) -> Dict[str, int]:
        open_count = sum(1 for channel in self._channels.values() if not channel.closed)
        return {"open": open_count, "closed": len(self._channels) - open_count}
