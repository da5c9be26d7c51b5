import asyncio
import json
import os

import pytest

import utils.ffmpeg_helper as ffmpeg_helper
from domain.value_objects.region import DisplayRegion, Region
from exceptions import ProbeError, ValidationError
from services.ffmpeg_service import FFmpegService


def probe_runner(width, height, hint=""):
    async def runner(args):
        if 'default=nw=1' in args:
            return 0, hint, ""
        if '-show_format' in args:
            return 0, json.dumps({"streams": []}), ""
        return 0, json.dumps({"streams": [{"width": width, "height": height}]}), ""
    return runner


def service_for(width, height, hint=""):
    return FFmpegService(ffmpeg_path="ffmpeg-test", ffprobe_path="ffprobe-test", probe_runner=probe_runner(width, height, hint))


def test_calculate_region_from_display():
    service = service_for(640, 480)
    display = DisplayRegion(x=10, y=10, width=100, height=50, display_width=320, display_height=240, file_path="/m/a.mp4")

    result = asyncio.run(service.calculate_region_from_display(display, "/m/a.mp4"))

    assert result == {
        "regionString": "20,20 200x100",
        "region": {"x": 20, "y": 20, "width": 200, "height": 100},
        "actualRegion": {"x": 20, "y": 20, "width": 200, "height": 100},
        "originalDimensions": {"width": 640, "height": 480},
        "rotation": 0,
        "displayDimensions": {"width": 640, "height": 480},
        "isValid": True,
    }


def test_rotated_file_reports_both_orientations():
    service = service_for(1080, 1920, hint="rotation of -90.00 degrees")
    display = DisplayRegion(x=0, y=0, width=160, height=90, display_width=480, display_height=270)

    result = asyncio.run(service.calculate_region_from_display(display, "/m/phone.mov"))

    assert result["rotation"] == -90
    assert result["displayDimensions"] == {"width": 1920, "height": 1080}
    assert result["regionString"] == "0,0 640x360"
    # -90: x' = y, y' = storedHeight - x - w
    assert result["actualRegion"] == {"x": 0, "y": 1280, "width": 360, "height": 640}


def test_selection_outside_frame_is_flagged_invalid():
    service = service_for(640, 480)
    display = DisplayRegion(x=300, y=0, width=100, height=50, display_width=320, display_height=240)

    result = asyncio.run(service.calculate_region_from_display(display, "/m/a.mp4"))

    assert result["isValid"] is False


def test_selection_from_another_file_rejected():
    service = service_for(640, 480)
    display = DisplayRegion(x=0, y=0, width=1, height=1, display_width=10, display_height=10, file_path="/m/old.mp4")

    with pytest.raises(ValidationError):
        asyncio.run(service.calculate_region_from_display(display, "/m/new.mp4"))


def test_transform_region_returns_scaled_region_only():
    service = service_for(1080, 1920, hint="rotation of 90 degrees")
    display = DisplayRegion(x=0, y=0, width=480, height=270, display_width=960, display_height=540)

    assert asyncio.run(service.transform_region(display, "/m/phone.mov")) == Region(0, 0, 960, 540)


def test_probe_failure_propagates():
    async def failing(args):
        return 1, "", "Invalid data found when processing input"

    service = FFmpegService(ffmpeg_path="ffmpeg-test", ffprobe_path="ffprobe-test", probe_runner=failing)
    display = DisplayRegion(x=0, y=0, width=1, height=1, display_width=10, display_height=10)

    with pytest.raises(ProbeError):
        asyncio.run(service.calculate_region_from_display(display, "/m/broken.mp4"))


def test_configure_tool_paths_prefers_custom_path():
    service = service_for(640, 480)
    service.configure_tool_paths("/opt/ffmpeg/bin/ffmpeg", "/opt/ffmpeg/bin/ffprobe")

    assert service.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
    assert service.probe.ffprobe_path == "/opt/ffmpeg/bin/ffprobe"


def test_resolve_tool_path_falls_back_to_path_then_bare_name(monkeypatch):
    monkeypatch.setattr(ffmpeg_helper, "get_bundled_binary_path", lambda name: None)

    monkeypatch.setattr(ffmpeg_helper.shutil, "which", lambda name: f"/usr/bin/{name}")
    assert ffmpeg_helper.resolve_tool_path("ffmpeg") == "/usr/bin/ffmpeg"

    monkeypatch.setattr(ffmpeg_helper.shutil, "which", lambda name: None)
    assert ffmpeg_helper.resolve_tool_path("ffmpeg") == "ffmpeg"
    assert ffmpeg_helper.resolve_tool_path("ffmpeg", "  /custom/ffmpeg  ") == "/custom/ffmpeg"


def test_environment_override(monkeypatch):
    monkeypatch.setenv("FFPROBE_PATH", "/env/ffprobe")
    assert ffmpeg_helper.get_ffprobe_path() == "/env/ffprobe"
    assert ffmpeg_helper.get_ffprobe_path("/setting/ffprobe") == "/setting/ffprobe"


def test_bundled_binary_is_materialized(tmp_path):
    bundled = tmp_path / "bundle" / "ffmpeg"
    bundled.parent.mkdir()
    bundled.write_bytes(b"#!/bin/sh\n")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    target = ffmpeg_helper.materialize_binary(bundled, bin_dir)

    assert target == bin_dir / "ffmpeg"
    assert target.read_bytes() == b"#!/bin/sh\n"
    assert os.access(target, os.X_OK)
