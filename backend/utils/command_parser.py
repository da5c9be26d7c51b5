"""
Command line tokenizer for generated tool commands.

Splits a shell-style command string into an argument vector. Only quoting is
understood (single and double quotes group whitespace); there is no escape,
variable or glob handling, and unterminated quotes are tolerated.
"""
import re
from typing import List

# Leading tool-name token, e.g. "ffmpeg -i ..." or "/usr/bin/ffmpeg.exe -i ..."
_TOOL_PREFIX = re.compile(r'^\s*(?:\S*[\\/])?ffmpeg(?:\.exe)?\s+', re.IGNORECASE)

_QUOTES = ('"', "'")


def strip_tool_name(command: str) -> str:
    """Remove a leading ffmpeg token, if present."""
    return _TOOL_PREFIX.sub('', command, count=1).strip()


def parse_command(command: str) -> List[str]:
    """
    Split a command string into arguments.

    Whitespace inside a matched pair of quotes is kept in the token and the
    quote characters are dropped. Characters after an unmatched quote are
    absorbed into the current token. Empty tokens are never emitted.

    Args:
        command: Command string, with or without the leading tool name

    Returns:
        List of argument strings

    Example:
        >>> parse_command('ffmpeg -i "my file.mp4" -y out.mp4')
        ['-i', 'my file.mp4', '-y', 'out.mp4']
    """
    text = strip_tool_name(command)

    args = []
    current = []
    quote_char = None

    for char in text:
        if quote_char is None and char in _QUOTES:
            quote_char = char
        elif quote_char is not None and char == quote_char:
            quote_char = None
        elif quote_char is None and char.isspace():
            token = ''.join(current).strip()
            if token:
                args.append(token)
            current = []
        else:
            current.append(char)

    token = ''.join(current).strip()
    if token:
        args.append(token)

    return args
