"""
FFmpeg Service

Composition root for the execution core. Owns the resolved tool paths and
wires the metadata probe into the region calculator and the process
executor.
"""
import logging
from typing import Optional

from domain.value_objects.region import DisplayRegion, Region
from exceptions import ValidationError
from services.metadata_probe import MetadataProbe, ProbeRunner
from services.process_executor import ExecutionRequest, ExecutionResult, ProcessExecutor
from services.region_calculator import (
    calculate_region,
    format_region_string,
    validate_region,
)
from utils.ffmpeg_helper import get_ffmpeg_path, get_ffprobe_path
from utils.logging_utils import log_operation

logger = logging.getLogger(__name__)


class FFmpegService:
    """
    Single entry point for running and inspecting media with ffmpeg.

    Tool paths are resolved once at construction and again only when
    configure_tool_paths() is called (custom path settings changed).
    """

    def __init__(
        self,
        executor: Optional[ProcessExecutor] = None,
        ffmpeg_path: Optional[str] = None,
        ffprobe_path: Optional[str] = None,
        probe_runner: Optional[ProbeRunner] = None,
    ):
        self.executor = executor or ProcessExecutor()
        self._probe_runner = probe_runner
        self.ffmpeg_path = ffmpeg_path or get_ffmpeg_path()
        self.ffprobe_path = ffprobe_path or get_ffprobe_path()
        self.probe = MetadataProbe(self.ffprobe_path, runner=probe_runner)

    def configure_tool_paths(self, ffmpeg_custom: Optional[str] = None, ffprobe_custom: Optional[str] = None):
        """Re-resolve tool paths after the custom path settings changed."""
        self.ffmpeg_path = get_ffmpeg_path(ffmpeg_custom)
        self.ffprobe_path = get_ffprobe_path(ffprobe_custom)
        self.probe = MetadataProbe(self.ffprobe_path, runner=self._probe_runner)
        logger.info(f"Tool paths: ffmpeg={self.ffmpeg_path}, ffprobe={self.ffprobe_path}")

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a command with the resolved ffmpeg, whatever tool_path the caller set."""
        request.tool_path = self.ffmpeg_path
        return await self.executor.execute(request)

    def cancel(self, execution_id: str) -> dict:
        return self.executor.cancel(execution_id)

    async def check_availability(self) -> dict:
        return await self.executor.check_availability(self.ffmpeg_path)

    async def get_media_dimensions(self, file_path: str):
        return await self.probe.get_media_dimensions(file_path)

    @log_operation("calculate_region")
    async def calculate_region_from_display(self, display_region: DisplayRegion, file_path: str) -> dict:
        """
        Map a browser selection onto the true pixels of file_path.

        regionString/region are in display orientation, which is what ffmpeg
        filters see after autorotation. actualRegion is the same rectangle in
        storage orientation.

        Raises:
            ValidationError: The selection was captured against a different file
            ProbeError: Dimensions could not be obtained
        """
        if not display_region.belongs_to(file_path):
            raise ValidationError(
                "Region was selected on a different file",
                invalid_fields={"filePath": display_region.file_path},
            )

        dimensions = await self.get_media_dimensions(file_path)
        calculation = calculate_region(display_region, dimensions)
        scaled = calculation.scaled_region
        is_valid = validate_region(scaled, calculation.display_width, calculation.display_height)
        if not is_valid:
            logger.warning(f"Region {scaled} falls outside {calculation.display_width}x{calculation.display_height}")

        return {
            "regionString": format_region_string(scaled),
            "region": scaled.to_dict(),
            "actualRegion": calculation.actual_region.to_dict(),
            "originalDimensions": {"width": dimensions.width, "height": dimensions.height},
            "rotation": dimensions.rotation,
            "displayDimensions": calculation.display_dimensions(),
            "isValid": is_valid,
        }

    async def transform_region(self, display_region: DisplayRegion, file_path: str) -> Region:
        """Scaled region (display orientation, true pixels) for the click-to-crop path."""
        dimensions = await self.get_media_dimensions(file_path)
        return calculate_region(display_region, dimensions).scaled_region
