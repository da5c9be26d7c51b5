import asyncio
import json

import pytest

from exceptions import ProbeError
from services.metadata_probe import (
    MetadataProbe,
    corrected_display_size,
    normalize_rotation,
    rotation_from_display_matrix,
)


def dimensions_json(width=1920, height=1080, sar=None, dar=None):
    stream = {"width": width, "height": height}
    if sar:
        stream["sample_aspect_ratio"] = sar
    if dar:
        stream["display_aspect_ratio"] = dar
    return json.dumps({"streams": [stream]})


def fake_runner(dimensions=None, hint="", dump=None, fail_with=None):
    """ffprobe stand-in answering by the kind of query in argv."""
    calls = []

    async def runner(args):
        calls.append(args)
        if fail_with is not None:
            raise fail_with
        if 'default=nw=1' in args:
            return 0, hint, ""
        if '-show_format' in args:
            return 0, json.dumps(dump or {"streams": []}), ""
        if dimensions is not None:
            return dimensions
        return 0, dimensions_json(), ""

    runner.calls = calls
    return runner


def probe_with(**kwargs):
    runner = fake_runner(**kwargs)
    return MetadataProbe('ffprobe-test', runner=runner), runner


def run(coro):
    return asyncio.run(coro)


def test_plain_landscape_video():
    probe, runner = probe_with()
    dims = run(probe.get_media_dimensions('/media/a.mp4'))

    assert (dims.width, dims.height, dims.rotation) == (1920, 1080, 0)
    assert (dims.display_width, dims.display_height) == (1920, 1080)
    assert all(call[0] == 'ffprobe-test' for call in runner.calls)
    assert runner.calls[0][-1] == '/media/a.mp4'


def test_rotation_hint_wins():
    probe, runner = probe_with(
        dimensions=(0, dimensions_json(1080, 1920), ""),
        hint="width=1080\nheight=1920\n[SIDE_DATA]\ndisplaymatrix=\nrotation of -90.00 degrees\n[/SIDE_DATA]\n",
    )
    dims = run(probe.get_media_dimensions('/media/phone.mov'))

    assert dims.rotation == -90
    assert (dims.width, dims.height) == (1080, 1920)
    assert (dims.display_width, dims.display_height) == (1920, 1080)
    assert not any('-show_format' in call for call in runner.calls)


def test_rotate_tag_from_stream_dump():
    dump = {"streams": [
        {"codec_type": "audio"},
        {"codec_type": "video", "tags": {"rotate": "90"}},
    ]}
    probe, _ = probe_with(dump=dump)
    assert run(probe.get_video_rotation('/media/a.mp4')) == 90


def test_display_matrix_from_stream_dump():
    matrix = (
        "\n00000000:            0       65536           0\n"
        "00000001:       -65536           0           0\n"
        "00000002:            0           0  1073741824\n"
    )
    dump = {"streams": [{"codec_type": "video", "side_data_list": [
        {"side_data_type": "Display Matrix", "displaymatrix": matrix},
    ]}]}
    probe, _ = probe_with(dump=dump)
    assert run(probe.get_video_rotation('/media/a.mp4')) == -90


def test_side_data_rotation_field_from_stream_dump():
    dump = {"streams": [{"codec_type": "video", "side_data_list": [
        {"side_data_type": "Display Matrix", "rotation": -180},
    ]}]}
    probe, _ = probe_with(dump=dump)
    assert run(probe.get_video_rotation('/media/a.mp4')) == -180


def test_missing_rotation_metadata_is_zero():
    probe, _ = probe_with(dump={"streams": [{"codec_type": "video"}]})
    assert run(probe.get_video_rotation('/media/a.mp4')) == 0


def test_rotation_never_raises():
    probe, _ = probe_with(fail_with=FileNotFoundError("ffprobe"))
    assert run(probe.get_video_rotation('/media/a.mp4')) == 0


def test_no_video_stream():
    probe, _ = probe_with(dimensions=(0, json.dumps({"streams": []}), ""))
    with pytest.raises(ProbeError, match="No video stream found"):
        run(probe.get_media_dimensions('/media/song.mp3'))


def test_malformed_output():
    probe, _ = probe_with(dimensions=(0, "not json", ""))
    with pytest.raises(ProbeError, match="Failed to parse"):
        run(probe.get_media_dimensions('/media/a.mp4'))


def test_non_zero_exit_includes_stderr():
    probe, _ = probe_with(dimensions=(1, "", "/media/x.mp4: No such file or directory"))
    with pytest.raises(ProbeError) as exc_info:
        run(probe.get_media_dimensions('/media/x.mp4'))

    assert "No such file or directory" in exc_info.value.message
    assert exc_info.value.details["stderr"]


def test_probe_tool_missing():
    probe, _ = probe_with(fail_with=FileNotFoundError("ffprobe"))
    with pytest.raises(ProbeError, match="Failed to start ffprobe"):
        run(probe.get_media_dimensions('/media/a.mp4'))


def test_display_aspect_ratio_correction():
    # Anamorphic DVD: 720x480 stored, 16:9 displayed
    probe, _ = probe_with(dimensions=(0, dimensions_json(720, 480, sar="32:27", dar="16:9"), ""))
    dims = run(probe.get_media_dimensions('/media/dvd.mpg'))

    assert (dims.width, dims.height) == (720, 480)
    assert (dims.display_width, dims.display_height) == (853, 480)


def test_corrected_display_size():
    assert corrected_display_size(720, 480, None, "16:9") == (853, 480)
    assert corrected_display_size(1920, 1080, None, "4:3") == (1920, 1440)
    assert corrected_display_size(1920, 1080, "1:1", "16:9") == (1920, 1080)
    assert corrected_display_size(720, 576, "16:15", None) == (768, 576)
    assert corrected_display_size(640, 480, "0:1", "N/A") == (640, 480)


def test_normalize_rotation():
    assert normalize_rotation(-90.0) == -90
    assert normalize_rotation(89.6) == 90
    assert normalize_rotation(179.9) == 180
    assert normalize_rotation(33.4) == 33


@pytest.mark.parametrize("row,expected", [
    ("0       65536  0", -90),
    ("0      -65536  0", 90),
    ("-65536      0  0", 180),
    ("65536       0  0", None),
])
def test_display_matrix_table(row, expected):
    assert rotation_from_display_matrix(f"00000000: {row}\n") == expected


def raw_runner(dimensions_text, dump_text):
    async def runner(args):
        if 'default=nw=1' in args:
            return 0, "", ""
        if '-show_format' in args:
            return 0, dump_text, ""
        return 0, dimensions_text, ""

    return runner


@pytest.mark.parametrize("dump_text", [
    "null",
    "[]",
    '{"streams": null}',
    '{"streams": 5}',
    '{"streams": ["video", null, {"codec_type": "video", "side_data_list": [7]}]}',
])
def test_rotation_from_odd_stream_dump_is_zero(dump_text):
    probe = MetadataProbe('ffprobe-test', runner=raw_runner(dimensions_json(), dump_text))
    assert run(probe.get_video_rotation('/media/a.mp4')) == 0


@pytest.mark.parametrize("dimensions_text", ["null", "[]", "3"])
def test_non_object_output_is_a_parse_error(dimensions_text):
    probe = MetadataProbe('ffprobe-test', runner=raw_runner(dimensions_text, "{}"))
    with pytest.raises(ProbeError, match="Failed to parse ffprobe output"):
        run(probe.get_media_dimensions('/media/a.mp4'))


def test_non_object_stream_entry_is_no_video_stream():
    probe = MetadataProbe('ffprobe-test', runner=raw_runner('{"streams": [null]}', "{}"))
    with pytest.raises(ProbeError, match="No video stream found"):
        run(probe.get_media_dimensions('/media/a.mp4'))
