"""
File API Endpoints

Session input-file association, the command-line pre-configured file, and
byte-range serving of media for the browser preview.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, StreamingResponse

from constants import HTTPStatus, MIME_TYPES
from dependencies import get_session_id, get_session_tracker
from schemas import InputFileRequest, InputFileResponse
from services.session_tracker import ExecutionSessionTracker, get_preconfigured_file

router = APIRouter()
logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


def guess_media_type(file_path: Path) -> str:
    return MIME_TYPES.get(file_path.suffix.lower(), 'application/octet-stream')


def parse_range_header(range_header: str, file_size: int) -> tuple[int, int]:
    """
    Parse "bytes=start-end" (either side optional) into an inclusive range.

    Raises:
        HTTPException: 416 for malformed or unsatisfiable ranges
    """
    spec = range_header.strip().replace("bytes=", "", 1).split(",")[0].strip()
    start_text, _, end_text = spec.partition("-")
    try:
        if start_text:
            start = int(start_text)
            end = int(end_text) if end_text else file_size - 1
        else:
            # Suffix range: last N bytes
            start = max(file_size - int(end_text), 0)
            end = file_size - 1
    except ValueError:
        raise HTTPException(status_code=416, detail=f"Invalid range: {range_header}")

    end = min(end, file_size - 1)
    if start > end or start >= file_size:
        raise HTTPException(
            status_code=416,
            detail="Requested range not satisfiable",
            headers={"Content-Range": f"bytes */{file_size}"},
        )
    return start, end


def create_range_response(file_path: Path, range_header: str):
    """
    Create a streaming response for an HTTP Range request.

    Lets the browser seek in large outputs without downloading them.
    """
    file_size = file_path.stat().st_size
    start, end = parse_range_header(range_header, file_size)
    content_length = end - start + 1

    def iter_file():
        with open(file_path, 'rb') as f:
            f.seek(start)
            remaining = content_length
            while remaining > 0:
                data = f.read(min(STREAM_CHUNK_SIZE, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data

    return StreamingResponse(
        iter_file(),
        status_code=HTTPStatus.PARTIAL_CONTENT,
        media_type=guess_media_type(file_path),
        headers={
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Content-Length": str(content_length),
            "Accept-Ranges": "bytes",
            "Cache-Control": "public, max-age=3600",
        }
    )


@router.get("/serve-file")
async def serve_file(path: str, request: Request):
    """
    Serve a local media file with HTTP Range support.

    Args:
        path: Filesystem path (as returned in outputFile / input_file)
    """
    if not path:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="No file path provided")

    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="File not found")
    if not file_path.is_file():
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Path is not a file")

    range_header = request.headers.get("range")
    if range_header:
        return create_range_response(file_path, range_header)

    return FileResponse(
        str(file_path),
        media_type=guess_media_type(file_path),
        headers={
            "Accept-Ranges": "bytes",
            "Cache-Control": "public, max-age=3600",
        }
    )


@router.get("/session/input-file", response_model=InputFileResponse)
def get_input_file(
    session_id: str = Depends(get_session_id),
    tracker: ExecutionSessionTracker = Depends(get_session_tracker),
):
    """The file the session's next command will read"""
    input_file = tracker.get_current_input_file(session_id)
    return InputFileResponse(
        session_id=session_id,
        input_file=input_file,
        exists=bool(input_file) and Path(input_file).is_file(),
    )


@router.post("/session/input-file", response_model=InputFileResponse)
def set_input_file(
    body: InputFileRequest,
    session_id: str = Depends(get_session_id),
    tracker: ExecutionSessionTracker = Depends(get_session_tracker),
):
    """Associate a selected/uploaded file with the session"""
    file_path = Path(body.path).expanduser().resolve()
    if not file_path.is_file():
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"File not found: {body.path}")

    tracker.set_current_input_file(session_id, str(file_path))
    return InputFileResponse(session_id=session_id, input_file=str(file_path), exists=True)


@router.get("/preconfigured-file")
def preconfigured_file(
    session_id: str = Depends(get_session_id),
    tracker: ExecutionSessionTracker = Depends(get_session_tracker),
):
    """File passed on the command line; also becomes the session's input"""
    preconfigured = get_preconfigured_file()
    if preconfigured is None:
        return {"file": None}

    tracker.set_current_input_file(session_id, preconfigured.path)
    return {"file": preconfigured.to_dict()}
