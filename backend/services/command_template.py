"""
Command templates

A generated command carries {INPUT_FILE}/{OUTPUT_FILE} placeholders. The
display view keeps them; the executable view substitutes real paths. Both
views come from the same template string.
"""
import json
import logging
import random
import re
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config.paths import get_tmp_dir
from constants import Placeholders
from exceptions import ProviderError

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r'```(?:json)?\s*\n?([\s\S]*?)\n?```')
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

SYSTEM_PROMPT = """You are an FFmpeg command generator.
The user will ask you a series of operations to perform.

These will be in this exact JSON format:
{
  "input_filename": "example.mp4",
  "operation": "description of what to do",
  "use_placeholders": true,
  "region": null | "x,y widthxheight"
}

The region field (when not null) specifies a region of interest:
- "x,y widthxheight" where x,y is the top-left corner in pixels
- Example: "100,200 1280x720" = offset (100,200), size 1280x720
- Only apply region-based operations when explicitly requested

For every response, you must provide output in this exact JSON format:
{
  "command": "ffmpeg command with {INPUT_FILE} and {OUTPUT_FILE} placeholders",
  "output_extension": "ext",
  "error": null | "error description"
}

Rules:
- ALWAYS use {INPUT_FILE} and {OUTPUT_FILE} placeholders - never use actual paths
- ALWAYS include -y flag to overwrite output files
- ALWAYS return valid JSON, even for errors
- Set output_extension to the appropriate file extension without the dot (e.g., "mp4" not ".mp4")
- For video operations, maintain quality unless asked to compress
- For audio extraction, use appropriate codec (mp3, wav, etc.)
- If region is given, but no region specific operation is requested, ignore the field.
- The system will handle file path substitution automatically
- If the operation is unclear or impossible, explain in the error field

Operations Reference:
- Grayscale: -vf "format=gray" -pix_fmt yuv420p
- GIF: -filter_complex "[0:v]fps=10,scale=320:-1:flags=lanczos,split[a][b];[a]palettegen[p];[b][p]paletteuse" -loop 0
"""


class CommandTemplate:
    """A command string that may contain placeholder tokens."""

    def __init__(self, template: str):
        self.template = template or ''

    @property
    def display(self) -> str:
        """Placeholders intact; safe to show the user."""
        return self.template

    @property
    def has_placeholders(self) -> bool:
        return Placeholders.INPUT_FILE in self.template or Placeholders.OUTPUT_FILE in self.template

    def bind(self, input_file: Optional[str], output_file: Optional[str]) -> str:
        """Substitute every placeholder occurrence with real paths."""
        command = self.template
        if input_file is not None:
            command = command.replace(Placeholders.INPUT_FILE, str(input_file))
        if output_file is not None:
            command = command.replace(Placeholders.OUTPUT_FILE, str(output_file))
        return command

    def __str__(self) -> str:
        return self.template


def generate_output_filename(extension: str = 'out', tmp_dir: Optional[Path] = None) -> str:
    """
    Fresh output path: <tmpdir>/ffmpeg_<ms timestamp>_<6 random chars>.<ext>
    """
    directory = Path(tmp_dir) if tmp_dir else get_tmp_dir()
    extension = (extension or 'out').lstrip('.') or 'out'
    suffix = ''.join(random.choices(_SUFFIX_ALPHABET, k=6))
    return str(directory / f"ffmpeg_{int(time.time() * 1000)}_{suffix}.{extension}")


@dataclass
class ProviderCommand:
    """Structured reply of the command generator"""

    command: Optional[str]
    output_extension: Optional[str]
    error: Optional[str] = None
    output_file: Optional[str] = None

    @property
    def is_executable(self) -> bool:
        return bool(self.command and self.output_extension)

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "output_extension": self.output_extension,
            "output_file": self.output_file,
            "error": self.error,
        }


def strip_code_fence(text: str) -> str:
    """Return the contents of a markdown code block if the text has one."""
    match = _CODE_FENCE.search(text or '')
    return match.group(1).strip() if match else (text or '').strip()


def parse_provider_response(text: str, provider: str = 'unknown') -> ProviderCommand:
    """
    Parse the generator's JSON reply.

    Raises:
        ProviderError: The reply is not a JSON object
    """
    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(provider, f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError(provider, "Response is not a JSON object")

    extension = data.get('output_extension')
    return ProviderCommand(
        command=data.get('command') or None,
        output_extension=str(extension).lstrip('.') if extension else None,
        error=data.get('error') or None,
        output_file=data.get('output_file') or None,
    )


def build_operation_message(input_filename: str, operation: str, region: Optional[str] = None) -> str:
    """The structured user message sent for each requested operation."""
    return json.dumps(
        {
            "input_filename": input_filename,
            "operation": operation,
            "use_placeholders": True,
            "region": region or None,
        },
        indent=2,
    )
