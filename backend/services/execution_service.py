"""
Execution Service

Boundary operations for running generated commands: begin an execution,
cancel it, and stream its output. Converts every executor outcome into a
structured result plus exactly one terminal stream event, and advances the
session's input file so the next command chains from this one's output.
"""
import logging
from pathlib import Path
from typing import Optional

from constants import ExecutionConfig
from exceptions import (
    ExecutionCancelledError,
    ExecutionTimeoutError,
    ToolExecutionError,
    ToolSpawnError,
    ValidationError,
)
from services.execution_channels import ChannelRegistry, ExecutionChannel
from services.ffmpeg_service import FFmpegService
from services.process_executor import ExecutionRequest
from services.session_tracker import ExecutionSessionTracker
from utils.logging_utils import log_operation, set_logging_context

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "FFmpeg execution was cancelled"


class ExecutionService:
    """
    Orchestrates executions on top of the FFmpeg composition root.

    Usage:
        service = ExecutionService(ffmpeg_service, session_tracker)
        result = await service.begin_execution(
            session_id=sid, command=cmd, output_file=out, execution_id=eid
        )
    """

    def __init__(
        self,
        ffmpeg_service: FFmpegService,
        tracker: ExecutionSessionTracker,
        channels: Optional[ChannelRegistry] = None,
    ):
        self.ffmpeg = ffmpeg_service
        self.tracker = tracker
        self.channels = channels or ChannelRegistry()

    def channel_for(self, execution_id: str) -> ExecutionChannel:
        """Channel a stream subscriber should read (created if not yet started)."""
        return self.channels.get_or_create(execution_id)

    def resolve_next_input_file(self, session_id: str) -> Optional[str]:
        return self.tracker.get_current_input_file(session_id)

    @log_operation("begin_execution")
    async def begin_execution(
        self,
        *,
        session_id: str,
        command: str,
        execution_id: str,
        output_file: Optional[str] = None,
        timeout: float = ExecutionConfig.DEFAULT_TIMEOUT_SECONDS,
    ) -> dict:
        """
        Run a bound command and report its single outcome.

        Returns:
            {"success": True, "outputFile", "outputSize", "stdout", "stderr", "message"}
            {"success": False, "cancelled": True, "message", ...}
            {"success": False, "error", "stdout", "stderr", "code", "timedOut"}

        Raises:
            ValidationError: Empty command or missing execution id
        """
        if not command or not command.strip():
            self._reject(execution_id, "No command provided")
        if not execution_id:
            raise ValidationError("No execution ID provided")

        set_logging_context(execution_id=execution_id, session_id=session_id)
        channel = self.channels.reset(execution_id)

        request = ExecutionRequest(
            command=command,
            input_file=self.tracker.get_current_input_file(session_id),
            output_file=output_file,
            execution_id=execution_id,
            timeout=timeout,
            on_output=channel.publish_output,
        )

        try:
            result = await self.ffmpeg.execute(request)
        except ExecutionCancelledError as e:
            self._discard_partial_output(output_file)
            channel.cancel("Execution was cancelled")
            return {
                "success": False,
                "cancelled": True,
                "message": CANCELLED_MESSAGE,
                "stdout": e.stdout,
                "stderr": e.stderr,
            }
        except ExecutionTimeoutError as e:
            channel.fail(e.message, stderr=e.stderr, stdout=e.stdout, timed_out=True)
            return self._failure(e.message, e.stdout, e.stderr, None, timed_out=True)
        except ToolExecutionError as e:
            channel.fail(e.message, stderr=e.stderr, stdout=e.stdout)
            return self._failure(e.message, e.stdout, e.stderr, e.exit_code)
        except ToolSpawnError as e:
            channel.fail(e.message)
            return self._failure(e.message, "", "", None)

        if result.output_file:
            self.tracker.set_current_input_file(session_id, result.output_file)
        channel.complete(result.output_file, result.output_size)

        return {
            "success": True,
            "outputFile": result.output_file,
            "outputSize": result.output_size,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "message": (
                "FFmpeg command executed successfully"
                if result.output_file
                else "FFmpeg command executed successfully (no output file created)"
            ),
        }

    def _reject(self, execution_id: str, message: str):
        # A stream already waiting on this id gets its terminal event; a running one is left alone
        channel = self.channels.get(execution_id) if execution_id else None
        if channel is not None and not channel.started:
            channel.fail(message)
        raise ValidationError(message)

    @staticmethod
    def _failure(message: str, stdout: str, stderr: str, code: Optional[int], timed_out: bool = False) -> dict:
        return {
            "success": False,
            "error": message,
            "stdout": stdout,
            "stderr": stderr,
            "code": code,
            "timedOut": timed_out,
        }

    @staticmethod
    def _discard_partial_output(output_file: Optional[str]):
        if not output_file:
            return
        path = Path(output_file)
        if path.exists():
            try:
                path.unlink()
                logger.info(f"Deleted partial output file: {path}")
            except OSError as e:
                logger.error(f"Failed to delete partial output file {path}: {e}")

    @log_operation("cancel_execution")
    def cancel_execution(self, *, execution_id: str) -> dict:
        """
        Cancel a running execution and close its stream with 'cancelled'.

        Raises:
            ValidationError: Missing execution id
            NoActiveProcessError: Nothing is running under execution_id
        """
        if not execution_id:
            raise ValidationError("No execution ID provided")

        # NoActiveProcessError propagates; the executor still remembers the
        # request so an execution that has not registered yet ends cancelled
        result = self.ffmpeg.cancel(execution_id)
        self.channels.get_or_create(execution_id).cancel("Execution cancelled by user")
        return result
