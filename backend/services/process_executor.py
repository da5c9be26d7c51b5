"""
Process Executor

Owns the lifecycle of one external tool invocation: spawn, incremental
stdout/stderr capture, timeout, cancellation and the final outcome.

ARCHITECTURE NOTE: exactly one outcome per execution
- The running process is registered under its execution id before any
  output is read, so a concurrent cancel() can always find it
- cancel() only signals the process; the owning execute() call observes the
  exit through its normal path and reports cancellation because the handle
  was flagged
- Precedence when several things happen: cancelled > timed out > exit status
"""
import asyncio
import codecs
import inspect
import logging
import signal
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Union

import psutil

from constants import ExecutionConfig
from exceptions import (
    ExecutionCancelledError,
    ExecutionTimeoutError,
    NoActiveProcessError,
    ToolExecutionError,
    ToolSpawnError,
    ValidationError,
)
from repositories.memory_store import InMemoryStore
from services.interfaces import IKeyValueStore
from utils.command_parser import parse_command

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str, str], Union[None, Awaitable[None]]]

# Cancellations that arrived before their execution was registered
MAX_PENDING_CANCELLATIONS = 100
# Recently finished ids; a late cancel for one of these is not remembered
MAX_SETTLED_IDS = 100


@dataclass
class ExecutionRequest:
    """Everything needed to run one command"""

    command: str
    tool_path: str = 'ffmpeg'
    input_file: Optional[str] = None
    output_file: Optional[str] = None
    execution_id: Optional[str] = None
    timeout: float = ExecutionConfig.DEFAULT_TIMEOUT_SECONDS
    on_output: Optional[OutputCallback] = None


@dataclass
class ExecutionResult:
    """Successful (exit code 0) outcome"""

    stdout: str
    stderr: str
    exit_code: int
    output_file: Optional[str] = None
    output_size: Optional[int] = None
    success: bool = True

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "code": self.exit_code,
            "outputFile": self.output_file,
            "outputSize": self.output_size,
        }


@dataclass
class ActiveExecution:
    """A running process tracked in the active-execution registry"""

    execution_id: Optional[str]
    process: asyncio.subprocess.Process
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    timeout: float = ExecutionConfig.DEFAULT_TIMEOUT_SECONDS
    cancel_requested: bool = False
    stdout_chunks: List[str] = field(default_factory=list)
    stderr_chunks: List[str] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stdout(self) -> str:
        return ''.join(self.stdout_chunks)

    @property
    def stderr(self) -> str:
        return ''.join(self.stderr_chunks)


def signal_process_tree(pid: int, force: bool = False) -> int:
    """
    Signal a process and all of its descendants.

    Children are signalled first so a wrapper script cannot respawn them.

    Args:
        pid: Root process id
        force: SIGKILL (kill) instead of SIGTERM (terminate)

    Returns:
        Number of processes signalled
    """
    try:
        parent = psutil.Process(pid)
        targets = parent.children(recursive=True) + [parent]
    except psutil.NoSuchProcess:
        return 0

    signalled = 0
    for proc in targets:
        try:
            if force:
                proc.kill()
            else:
                proc.terminate()
            signalled += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            logger.warning(f"Cannot signal process {proc.pid}: {e}")
    return signalled


class ProcessExecutor:
    """
    Runs external commands and tracks the running ones by execution id.

    Usage:
        executor = ProcessExecutor()
        result = await executor.execute(ExecutionRequest(command=..., tool_path=...))
    """

    def __init__(self, registry: Optional[IKeyValueStore[ActiveExecution]] = None):
        self._active = registry if registry is not None else InMemoryStore()
        self._pending_cancellations: "OrderedDict[str, None]" = OrderedDict()
        self._settled_ids: "OrderedDict[str, None]" = OrderedDict()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def is_active(self, execution_id: str) -> bool:
        return execution_id in self._active

    def active_ids(self) -> List[str]:
        return list(self._active.keys())

    def _remember_cancellation(self, execution_id: str):
        self._pending_cancellations[execution_id] = None
        while len(self._pending_cancellations) > MAX_PENDING_CANCELLATIONS:
            self._pending_cancellations.popitem(last=False)

    def _consume_cancellation(self, execution_id: Optional[str]) -> bool:
        if execution_id is None:
            return False
        return self._pending_cancellations.pop(execution_id, False) is None

    def _mark_settled(self, execution_id: str):
        self._pending_cancellations.pop(execution_id, None)
        self._settled_ids.pop(execution_id, None)
        self._settled_ids[execution_id] = None
        while len(self._settled_ids) > MAX_SETTLED_IDS:
            self._settled_ids.popitem(last=False)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Run a command to completion.

        Args:
            request: Command, tool path, ids and streaming callback

        Returns:
            ExecutionResult when the tool exits with status 0

        Raises:
            ExecutionCancelledError: cancel() was called for this execution
            ExecutionTimeoutError: the timeout elapsed; the process was killed
            ToolExecutionError: non-zero exit status
            ToolSpawnError: the tool could not be started
            ValidationError: the execution id is already running
        """
        execution_id = request.execution_id
        args = parse_command(request.command)

        if execution_id is not None and execution_id in self._active:
            raise ValidationError(f"Execution {execution_id} is already running")

        if self._consume_cancellation(execution_id):
            logger.info(f"Execution {execution_id} was cancelled before it started")
            raise ExecutionCancelledError(execution_id)
        if execution_id is not None:
            self._settled_ids.pop(execution_id, None)

        logger.info(f"Executing: {request.tool_path} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                request.tool_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to start {request.tool_path}: {e}")
            raise ToolSpawnError(request.tool_path, e) from e

        handle = ActiveExecution(execution_id=execution_id, process=process, timeout=request.timeout)

        # Register before the first read so cancel() can find the process
        if execution_id is not None:
            self._active.set(execution_id, handle)
            if self._consume_cancellation(execution_id):
                self._request_cancel(handle)

        timed_out = False
        exit_code = None
        try:
            exit_code = await asyncio.wait_for(
                self._supervise(handle, request.on_output),
                timeout=request.timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"Execution {execution_id or handle.pid} timed out after {request.timeout:g}s - killing")
            await self._kill(handle)
        except asyncio.CancelledError:
            # Caller went away (client disconnect, shutdown) - don't leave an orphan
            await self._kill(handle)
            raise
        finally:
            if execution_id is not None and self._active.get(execution_id) is handle:
                self._active.pop(execution_id)
            if execution_id is not None:
                self._mark_settled(execution_id)

        return self._settle(handle, request, exit_code, timed_out)

    def _settle(
        self,
        handle: ActiveExecution,
        request: ExecutionRequest,
        exit_code: Optional[int],
        timed_out: bool,
    ) -> ExecutionResult:
        """Turn the raw exit state into the single outcome of the execution."""
        stdout, stderr = handle.stdout, handle.stderr

        if handle.cancel_requested:
            logger.info(f"Execution {handle.execution_id} cancelled (exit code {exit_code})")
            raise ExecutionCancelledError(handle.execution_id, stdout, stderr)

        if timed_out:
            raise ExecutionTimeoutError(request.timeout, stdout, stderr)

        if exit_code == 0:
            result = ExecutionResult(stdout=stdout, stderr=stderr, exit_code=0)
            if request.output_file:
                output_path = Path(request.output_file)
                if output_path.exists():
                    result.output_file = str(output_path)
                    result.output_size = output_path.stat().st_size
                else:
                    logger.info(f"Expected output file was not created: {output_path}")
            logger.info(
                f"✅ Execution {handle.execution_id or handle.pid} completed"
                + (f" ({result.output_size:,} bytes)" if result.output_size is not None else "")
            )
            return result

        if exit_code is not None and exit_code < 0:
            message = f"Execution terminated by signal {-exit_code}"
        else:
            message = f"Execution failed with code {exit_code}"
        logger.error(f"{message}: {stderr[-ExecutionConfig.STDERR_TAIL_CHARS:].strip()}")
        raise ToolExecutionError(exit_code, stdout, stderr, message=message)

    async def _supervise(self, handle: ActiveExecution, on_output: Optional[OutputCallback]) -> int:
        """Pump both pipes and wait for exit. Returns the exit code."""
        process = handle.process
        readers = [
            asyncio.create_task(self._pump(process.stdout, 'stdout', handle.stdout_chunks, on_output)),
            asyncio.create_task(self._pump(process.stderr, 'stderr', handle.stderr_chunks, on_output)),
        ]
        try:
            exit_code = await process.wait()
            # Let readers drain what is already buffered; a surviving grandchild
            # holding the pipe open must not delay completion forever
            _, pending = await asyncio.wait(readers, timeout=ExecutionConfig.KILL_GRACE_SECONDS)
            if pending:
                logger.warning(f"Output pipes still open after exit of pid {process.pid}; abandoning readers")
            return exit_code
        finally:
            for task in readers:
                if not task.done():
                    task.cancel()

    async def _pump(
        self,
        stream: asyncio.StreamReader,
        stream_name: str,
        sink: List[str],
        on_output: Optional[OutputCallback],
    ):
        """Read a pipe chunk by chunk, forwarding each chunk as it arrives."""
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        while True:
            data = await stream.read(ExecutionConfig.READ_CHUNK_SIZE)
            text = decoder.decode(data, final=not data)
            if text:
                sink.append(text)
                if text.strip():
                    logger.debug(f"[{stream_name}] {text.rstrip()}")
                    if on_output is not None:
                        await self._deliver(on_output, stream_name, text)
            if not data:
                break

    @staticmethod
    async def _deliver(on_output: OutputCallback, stream_name: str, text: str):
        try:
            outcome = on_output(stream_name, text)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            # Observer failures must not affect the execution itself
            logger.warning(f"Output observer failed: {e}")

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def _request_cancel(self, handle: ActiveExecution):
        handle.cancel_requested = True
        signalled = signal_process_tree(handle.pid, force=False)
        logger.info(f"🛑 Sent {signal.Signals.SIGTERM.name} to execution {handle.execution_id} ({signalled} process(es))")

    async def _kill(self, handle: ActiveExecution):
        """Force-kill the process tree and reap the process."""
        signal_process_tree(handle.pid, force=True)
        try:
            await asyncio.wait_for(handle.process.wait(), timeout=ExecutionConfig.KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.error(f"Process {handle.pid} did not exit after SIGKILL")

    def cancel(self, execution_id: str) -> dict:
        """
        Cancel a running execution.

        Sends a termination signal and removes the registry entry. The owning
        execute() call settles through its own exit handling and raises
        ExecutionCancelledError.

        Raises:
            NoActiveProcessError: Nothing is running under execution_id. Unless
                the id just finished, the request is remembered so an
                execution that has not yet registered is cancelled as soon as
                it does.
        """
        handle = self._active.pop(execution_id)
        if handle is None:
            if execution_id in self._settled_ids:
                logger.info(f"Execution {execution_id} already finished, nothing to cancel")
            else:
                self._remember_cancellation(execution_id)
            raise NoActiveProcessError(execution_id)

        self._request_cancel(handle)
        return {"success": True, "message": "Execution cancelled"}

    async def shutdown(self):
        """Kill every running execution (application shutdown)."""
        for execution_id in list(self._active.keys()):
            handle = self._active.pop(execution_id)
            if handle is not None:
                handle.cancel_requested = True
                await self._kill(handle)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def check_availability(
        self,
        tool_path: str = 'ffmpeg',
        timeout: float = ExecutionConfig.AVAILABILITY_TIMEOUT_SECONDS,
    ) -> dict:
        """
        Check whether tool_path can be run (`<tool> -version`).

        Never raises.

        Returns:
            {"available": bool, "path": str} plus "version", "error" or
            "timeout" where applicable
        """
        try:
            process = await asyncio.create_subprocess_exec(
                tool_path,
                '-version',
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"Tool not available at {tool_path}: {e}")
            return {"available": False, "path": tool_path, "error": str(e)}

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Availability check for {tool_path} timed out after {timeout:g}s")
            signal_process_tree(process.pid, force=True)
            try:
                await asyncio.wait_for(process.wait(), timeout=ExecutionConfig.KILL_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.error(f"Availability probe {process.pid} did not exit after SIGKILL")
            return {"available": False, "path": tool_path, "timeout": True}

        result = {"available": process.returncode == 0, "path": tool_path}
        if process.returncode == 0:
            first_line = stdout.decode('utf-8', errors='replace').splitlines()[:1]
            if first_line:
                result["version"] = first_line[0].strip()
        return result
