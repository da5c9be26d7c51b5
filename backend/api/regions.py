"""
Region API Endpoints

Maps a crop selection drawn on the browser preview onto true media pixels.
"""
from fastapi import APIRouter, Depends

from dependencies import get_ffmpeg_service
from domain.value_objects.region import DisplayRegion
from schemas import RegionRequest, RegionResponse
from services.ffmpeg_service import FFmpegService
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.post("/calculate-region", response_model=RegionResponse)
@handle_api_errors("Region calculation")
async def calculate_region(
    body: RegionRequest,
    ffmpeg: FFmpegService = Depends(get_ffmpeg_service),
):
    """
    Probe the file and scale the selection to its pixels.

    A selection captured on a different file is rejected (400); the client
    discards it.
    """
    payload = body.display_region
    display_region = DisplayRegion(
        x=payload.x,
        y=payload.y,
        width=payload.width,
        height=payload.height,
        display_width=payload.display_width,
        display_height=payload.display_height,
        file_path=payload.file_path,
    )
    return await ffmpeg.calculate_region_from_display(display_region, file_path=body.file_path)
