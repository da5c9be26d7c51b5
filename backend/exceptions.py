"""
Custom exception classes for the application.

This module defines domain-specific exceptions that provide better error handling
and clearer error messages throughout the application.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    def __init__(self, message: str, missing_keys: list[str] | None = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when validation fails"""

    def __init__(self, message: str, invalid_fields: dict | None = None):
        details = {"invalid_fields": invalid_fields} if invalid_fields else {}
        super().__init__(message, details)


class InputFileError(ApplicationError):
    """Raised when a session has no usable input file"""

    def __init__(self, message: str, session_id: str | None = None):
        details = {"session_id": session_id} if session_id else {}
        super().__init__(message, details)


class ToolSpawnError(ApplicationError):
    """Raised when the external tool cannot be started at all"""

    def __init__(self, tool_path: str, error: OSError):
        self.tool_path = tool_path
        self.error = error
        message = (
            f"Failed to start process '{tool_path}': {error}. "
            f"Check that the binary is installed, that the configured path is correct "
            f"and that it is executable."
        )
        super().__init__(message, {"tool_path": tool_path, "errno": getattr(error, 'errno', None)})


class ToolExecutionError(ApplicationError):
    """Raised when the external tool ran but exited with a non-zero status"""

    def __init__(self, exit_code: int | None, stdout: str = "", stderr: str = "", message: str | None = None):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        msg = message or f"Execution failed with code {exit_code}"
        super().__init__(msg, {"exit_code": exit_code})


class ExecutionTimeoutError(ToolExecutionError):
    """Raised when an execution exceeds its wall-clock budget and is killed"""

    timed_out = True

    def __init__(self, timeout: float, stdout: str = "", stderr: str = ""):
        self.timeout = timeout
        super().__init__(
            None,
            stdout,
            stderr,
            message=f"Execution timed out after {timeout:g} seconds and was terminated",
        )
        self.details["timeout"] = timeout


class ExecutionCancelledError(ApplicationError):
    """Raised when an execution ends because the user cancelled it"""

    def __init__(self, execution_id: str, stdout: str = "", stderr: str = ""):
        self.execution_id = execution_id
        self.stdout = stdout
        self.stderr = stderr
        super().__init__("Execution was cancelled", {"execution_id": execution_id})


class NoActiveProcessError(ApplicationError):
    """Raised when cancelling an execution id that has no running process"""

    def __init__(self, execution_id: str):
        super().__init__(
            "No active process found for this execution",
            {"execution_id": execution_id},
        )


class ProbeError(ApplicationError):
    """Raised when media metadata cannot be obtained or parsed"""

    def __init__(self, message: str, file_path: str | None = None, stderr: str | None = None):
        details = {}
        if file_path:
            details["file_path"] = file_path
        if stderr:
            details["stderr"] = stderr
        super().__init__(message, details)


class RegionFormatError(ApplicationError):
    """Raised when a region string does not match 'x,y WIDTHxHEIGHT'"""

    def __init__(self, value: str):
        super().__init__(
            f"Invalid region format: '{value}'. Expected 'x,y widthxheight'",
            {"value": value},
        )


class ProviderError(ApplicationError):
    """Raised when an AI provider call fails or returns unusable output"""

    def __init__(self, provider: str, message: str):
        details = {"provider": provider}
        super().__init__(message, details)
