import json
import re

import pytest

from exceptions import ProviderError
from services.command_template import (
    CommandTemplate,
    build_operation_message,
    generate_output_filename,
    parse_provider_response,
)

TEMPLATE = 'ffmpeg -i {INPUT_FILE} -vf "format=gray" -pix_fmt yuv420p -y {OUTPUT_FILE}'


def test_bind_replaces_every_placeholder():
    template = CommandTemplate('ffmpeg -i {INPUT_FILE} -i {INPUT_FILE} -y {OUTPUT_FILE}')

    bound = template.bind('/media/a.mp4', '/tmp/out.mp4')

    assert bound == 'ffmpeg -i /media/a.mp4 -i /media/a.mp4 -y /tmp/out.mp4'
    assert template.display == 'ffmpeg -i {INPUT_FILE} -i {INPUT_FILE} -y {OUTPUT_FILE}'
    assert template.has_placeholders


def test_template_without_placeholders():
    template = CommandTemplate('ffmpeg -version')
    assert not template.has_placeholders
    assert template.bind('/a', '/b') == 'ffmpeg -version'


def test_generate_output_filename(tmp_path):
    name = generate_output_filename('.gif', tmp_dir=tmp_path)

    assert name.startswith(str(tmp_path))
    assert re.search(r'ffmpeg_\d+_[a-z0-9]{6}\.gif$', name)
    assert generate_output_filename('gif', tmp_dir=tmp_path) != name


def test_parse_fenced_provider_response():
    reply = "Here you go:\n```json\n" + json.dumps({
        "command": TEMPLATE,
        "output_extension": ".mp4",
        "error": None,
    }) + "\n```"

    parsed = parse_provider_response(reply, 'openai')

    assert parsed.command == TEMPLATE
    assert parsed.output_extension == 'mp4'
    assert parsed.is_executable


def test_parse_provider_error_field():
    parsed = parse_provider_response('{"command": null, "output_extension": null, "error": "Cannot do that"}')
    assert not parsed.is_executable
    assert parsed.error == "Cannot do that"


@pytest.mark.parametrize("reply", ["sure thing!", "[1, 2]"])
def test_unparseable_provider_response(reply):
    with pytest.raises(ProviderError):
        parse_provider_response(reply, 'openai')


def test_operation_message():
    message = json.loads(build_operation_message('a.mp4', 'crop this', '20,30 200x100'))
    assert message == {
        "input_filename": "a.mp4",
        "operation": "crop this",
        "use_placeholders": True,
        "region": "20,30 200x100",
    }
