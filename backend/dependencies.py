"""
Dependency injection providers for FastAPI.

The execution core is process-wide (one executor registry, one session
map); these factories hand the shared instances to routers and let tests
substitute them through app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from constants import SettingKeys
from database import get_db
from models import Setting
from services.chat_service import ChatService
from services.execution_service import ExecutionService
from services.ffmpeg_service import FFmpegService
from services.session_tracker import ExecutionSessionTracker, derive_session_id, session_tracker

_ffmpeg_service: Optional[FFmpegService] = None
_execution_service: Optional[ExecutionService] = None


def get_session_tracker() -> ExecutionSessionTracker:
    return session_tracker


def get_ffmpeg_service() -> FFmpegService:
    """
    Shared composition root; tool paths are resolved on first use.

    Returns:
        FFmpegService instance
    """
    global _ffmpeg_service
    if _ffmpeg_service is None:
        _ffmpeg_service = FFmpegService()
    return _ffmpeg_service


def get_execution_service() -> ExecutionService:
    """
    Shared execution service (owns the stream channels).

    Returns:
        ExecutionService instance
    """
    global _execution_service
    if _execution_service is None:
        _execution_service = ExecutionService(get_ffmpeg_service(), get_session_tracker())
    return _execution_service


def get_chat_service(
    db: Session = Depends(get_db),
    tracker: ExecutionSessionTracker = Depends(get_session_tracker),
) -> ChatService:
    """
    Chat service using the configured command template, if any.

    Args:
        db: Database session
        tracker: Session -> input file map

    Returns:
        ChatService instance
    """
    setting = db.query(Setting).filter(Setting.key == SettingKeys.COMMAND_TEMPLATE).first()
    template = setting.value.strip() if setting and setting.value else None
    return ChatService(tracker, system_prompt=template or None)


def get_session_id(request: Request) -> str:
    """Coarse client identity: host + User-Agent."""
    host = request.client.host if request.client else ''
    return derive_session_id(host, request.headers.get('user-agent', ''))
