"""
Errors - Exception hierarchy shared by every VITALS component.

Scanner- and cache-level errors are contained by the orchestrator and
logged; only configuration failures and explicit batch stops abort a run.
"""

from typing import Any, Dict, Optional


class VitalsError(Exception):
    """Base exception for all VITALS errors"""

    def __init__(
        self,
        message: str,
        code: str = "VITALS_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": {key: _jsonable(value) for key, value in self.details.items()},
        }


class ExternalCommandError(VitalsError):
    """Raised when a subprocess fails, is killed, or exits non-zero"""

    def __init__(
        self,
        command: str,
        exit_code: Optional[int],
        signal: Optional[str],
        stdout: str = "",
        stderr: str = "",
        message: Optional[str] = None,
    ):
        super().__init__(
            message or f"Command execution failed: {command}",
            code="COMMAND_EXECUTION_ERROR",
            details={
                "command": command,
                "exit_code": exit_code,
                "signal": signal,
                "stdout": stdout,
                "stderr": stderr,
            },
        )
        self.command = command
        self.exit_code = exit_code
        self.signal = signal
        self.stdout = stdout
        self.stderr = stderr


class CommandTimeoutError(ExternalCommandError):
    """Raised when a subprocess exceeds its timeout and is killed"""

    def __init__(self, command: str, timeout: float, stdout: str = "", stderr: str = ""):
        super().__init__(
            command,
            exit_code=None,
            signal="SIGKILL",
            stdout=stdout,
            stderr=stderr,
            message=f"Command '{command}' timed out after {timeout:.1f}s",
        )
        self.code = "COMMAND_TIMEOUT_ERROR"
        self.timeout = timeout


class FileSystemError(VitalsError):
    """Raised when reading, writing, or hashing a specific path fails"""

    def __init__(self, operation: str, path: str, original: Optional[BaseException] = None):
        reason = f". Original error: {original}" if original else ""
        super().__init__(
            f"File system operation failed: {operation} on {path}{reason}",
            code="FILE_SYSTEM_ERROR",
            details={"operation": operation, "path": path, "original": original},
        )
        self.operation = operation
        self.path = path
        self.original = original


class ConfigurationError(VitalsError):
    """Raised when the merged configuration fails validation (fatal)"""

    def __init__(self, config_key: str, message: str = "Invalid configuration"):
        super().__init__(
            f"{message}: {config_key}",
            code="CONFIGURATION_ERROR",
            details={"config_key": config_key},
        )
        self.config_key = config_key


class CacheCorruptionError(VitalsError):
    """Raised when the persisted cache cannot be decoded (non-fatal)"""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Cache artifact is corrupt: {path} ({reason})",
            code="CACHE_CORRUPTION_ERROR",
            details={"path": path, "reason": reason},
        )
        self.path = path


class AutoFixError(VitalsError):
    """Raised when a fix strategy cannot be applied to an issue"""

    def __init__(self, issue_id: str, reason: str):
        super().__init__(reason, code="AUTO_FIX_ERROR", details={"issue_id": issue_id})
        self.issue_id = issue_id


class QueueClearedError(VitalsError):
    """Raised for queued items that were rejected by BatchQueue.clear()"""

    def __init__(self):
        super().__init__("Queue cleared", code="QUEUE_CLEARED")


def _jsonable(value: Any) -> Any:
    """Reduce exception details to JSON-friendly values"""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
