"""
Execution API Endpoints

Run a bound ffmpeg command, cancel it, and follow its output as
server-sent events.
"""
import json
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from constants import HTTPStatus, StreamEventType
from dependencies import get_execution_service, get_ffmpeg_service, get_session_id
from schemas import CancelRequest, ExecuteRequest, ExecuteResponse
from services.execution_service import ExecutionService
from services.ffmpeg_service import FFmpegService
from utils.error_handlers import handle_api_errors

router = APIRouter()
logger = logging.getLogger(__name__)


def format_sse(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


@router.get("/ffmpeg-status")
async def ffmpeg_status(ffmpeg: FFmpegService = Depends(get_ffmpeg_service)):
    """Whether the resolved ffmpeg binary can be run"""
    return await ffmpeg.check_availability()


@router.post("/execute-ffmpeg", response_model=ExecuteResponse)
@handle_api_errors("FFmpeg execution")
async def execute_ffmpeg(
    body: ExecuteRequest,
    session_id: str = Depends(get_session_id),
    service: ExecutionService = Depends(get_execution_service),
):
    """
    Run a command to completion.

    Cancelled executions answer 200 with cancelled=true; tool failures
    answer 500 with the captured output.
    """
    result = await service.begin_execution(
        session_id=session_id,
        command=body.command,
        execution_id=body.execution_id,
        output_file=body.output_file,
        timeout=body.timeout,
    )
    if not result["success"] and not result.get("cancelled"):
        return JSONResponse(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content=result)
    return result


@router.post("/cancel-ffmpeg")
@handle_api_errors("FFmpeg cancellation")
async def cancel_ffmpeg(
    body: CancelRequest,
    service: ExecutionService = Depends(get_execution_service),
):
    """Cancel a running execution (404 when nothing is running under the id)"""
    return service.cancel_execution(execution_id=body.execution_id)


@router.get("/stream-ffmpeg-output/{execution_id}")
async def stream_ffmpeg_output(
    execution_id: str,
    service: ExecutionService = Depends(get_execution_service),
):
    """
    Server-sent events for one execution.

    Starts with 'connected', then output chunks, and ends after exactly one
    of complete/error/cancelled.
    """
    channel = service.channel_for(execution_id)

    async def event_generator():
        yield format_sse({"type": StreamEventType.CONNECTED.value})
        async for event in channel.subscribe():
            yield format_sse(event)
        logger.debug(f"Stream for execution {execution_id} finished")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
