"""
Application-wide constants and configuration keys.

This module centralizes all magic strings and numbers used throughout the application
to improve maintainability and reduce duplication.
"""
from enum import Enum


class StreamEventType(str, Enum):
    """
    Event kinds pushed on an execution's output stream.

    A stream always starts with CONNECTED (sent by the SSE endpoint), carries
    zero or more OUTPUT chunks and ends with exactly one of
    COMPLETE / ERROR / CANCELLED.
    """

    CONNECTED = 'connected'
    OUTPUT = 'output'
    COMPLETE = 'complete'
    ERROR = 'error'
    CANCELLED = 'cancelled'

    @classmethod
    def terminal(cls) -> tuple:
        """Event kinds that close a stream"""
        return (cls.COMPLETE, cls.ERROR, cls.CANCELLED)


class Placeholders:
    """Literal tokens a generated command template may contain"""

    INPUT_FILE = "{INPUT_FILE}"
    OUTPUT_FILE = "{OUTPUT_FILE}"


class ServerConfig:
    """Server configuration constants"""

    HOST = "127.0.0.1"
    PORT = 3000
    PORT_ATTEMPTS = 5  # Try PORT..PORT+4 before giving up

    @classmethod
    def url(cls, port: int | None = None) -> str:
        """Get the full server URL"""
        return f"http://localhost:{port or cls.PORT}"


class ExecutionConfig:
    """Process execution configuration constants"""

    DEFAULT_TIMEOUT_SECONDS = 60.0
    AVAILABILITY_TIMEOUT_SECONDS = 5.0
    PROBE_TIMEOUT_SECONDS = 30.0
    KILL_GRACE_SECONDS = 2.0  # Wait after SIGKILL before abandoning pipe readers
    READ_CHUNK_SIZE = 4096
    MAX_CLOSED_CHANNELS = 100  # Finished stream channels kept for late subscribers
    CHANNEL_START_TIMEOUT_SECONDS = 30.0  # Unstarted channel lifetime before it closes with an error
    SUBSCRIBER_QUEUE_SIZE = 1000
    STDERR_TAIL_CHARS = 2000  # Portion of stderr surfaced in error messages


class SettingKeys:
    """Database setting keys used throughout the application"""

    FFMPEG_PATH = "ffmpeg_path"
    FFPROBE_PATH = "ffprobe_path"
    AUTO_EXECUTE_COMMANDS = "auto_execute_commands"
    SHOW_RAW_MESSAGES = "show_raw_messages"
    COMMAND_TEMPLATE = "command_template"

    BOOLEAN_KEYS = (AUTO_EXECUTE_COMMANDS, SHOW_RAW_MESSAGES)
    TOOL_PATH_KEYS = (FFMPEG_PATH, FFPROBE_PATH)


DEFAULT_SETTINGS = {
    SettingKeys.FFMPEG_PATH: "",
    SettingKeys.FFPROBE_PATH: "",
    SettingKeys.AUTO_EXECUTE_COMMANDS: "true",
    SettingKeys.SHOW_RAW_MESSAGES: "false",
    SettingKeys.COMMAND_TEMPLATE: "",
}


class ChatDefaults:
    """Options sent with every provider chat request"""

    TEMPERATURE = 0
    MAX_TOKENS = 1000
    REQUEST_TIMEOUT_SECONDS = 120.0


MIME_TYPES = {
    # Audio
    '.mp3': 'audio/mpeg',
    '.wav': 'audio/wav',
    '.ogg': 'audio/ogg',
    '.aac': 'audio/aac',
    '.flac': 'audio/flac',
    '.m4a': 'audio/mp4',
    '.wma': 'audio/x-ms-wma',

    # Video
    '.mp4': 'video/mp4',
    '.webm': 'video/webm',
    '.avi': 'video/x-msvideo',
    '.mov': 'video/quicktime',
    '.wmv': 'video/x-ms-wmv',
    '.flv': 'video/x-flv',
    '.mkv': 'video/x-matroska',
    '.m4v': 'video/mp4',

    # Images
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.bmp': 'image/bmp',
    '.svg': 'image/svg+xml',
}


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    OK = 200
    PARTIAL_CONTENT = 206

    # Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
