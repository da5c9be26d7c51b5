from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession
from typing import List
import logging

from constants import HTTPStatus, SettingKeys, DEFAULT_SETTINGS
from database import get_db
from dependencies import get_ffmpeg_service
from init_db import load_tool_path_settings
from models import Setting as SettingModel
from schemas import Setting, SettingBase
from services.ffmpeg_service import FFmpegService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/settings", response_model=List[Setting])
def get_settings(db: DBSession = Depends(get_db)):
    """Get all settings"""
    return db.query(SettingModel).all()


@router.get("/settings/{key}", response_model=Setting)
def get_setting(key: str, db: DBSession = Depends(get_db)):
    """Get a specific setting"""
    setting = db.query(SettingModel).filter(SettingModel.key == key).first()
    if not setting:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"Setting '{key}' not found")
    return setting


@router.put("/settings/{key}", response_model=Setting)
def update_setting(
    key: str,
    setting_update: SettingBase,
    db: DBSession = Depends(get_db),
    ffmpeg: FFmpegService = Depends(get_ffmpeg_service),
):
    """Update a specific setting value"""
    if setting_update.key != key:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Key mismatch in path and body")
    if key not in DEFAULT_SETTINGS:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=f"Unknown setting '{key}'")

    setting = db.query(SettingModel).filter(SettingModel.key == key).first()
    if not setting:
        setting = SettingModel(key=key, value=setting_update.value)
        db.add(setting)
    else:
        setting.value = setting_update.value

    db.commit()
    db.refresh(setting)

    # A custom binary path takes effect for the next execution
    if key in SettingKeys.TOOL_PATH_KEYS:
        paths = load_tool_path_settings(db)
        ffmpeg.configure_tool_paths(
            paths[SettingKeys.FFMPEG_PATH],
            paths[SettingKeys.FFPROBE_PATH],
        )

    logger.info(f"Setting updated: {key}")
    return setting
