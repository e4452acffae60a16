"""
Custom Exceptions for AppForge
==============================

Extraction, layout and planning errors are raised internally and recovered at
the component boundary; those layers always return a best-effort result.
Only the execution layer lets errors escape, and the orchestrator turns them
into either an archive fallback or a single terminal failure.

Usage:
    from appforge.core.exceptions import ConnectionFailedError

    try:
        await channel.connect()
    except ConnectionFailedError as e:
        logger.warning(f"Terminal unavailable: {e}")
"""

from typing import Optional, Any, Dict


class AppForgeError(Exception):
    """Base exception for all AppForge errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Extraction / Layout / Planning (recoverable)
# ============================================

class ExtractionEmptyError(AppForgeError):
    """No files could be extracted from the generated text"""

    def __init__(self, message: str = "No files found in generated text"):
        super().__init__(message, code="EXTRACTION_EMPTY")


class ClassificationAmbiguousError(AppForgeError):
    """A file could not be attributed to a single stack"""

    def __init__(self, file_name: str, candidates: list):
        super().__init__(
            f"Ambiguous destination for '{file_name}'",
            code="CLASSIFICATION_AMBIGUOUS",
            details={"file_name": file_name, "candidates": candidates}
        )


class LayoutCollisionError(AppForgeError):
    """Two raw files were organized onto the same project path"""

    def __init__(self, path: str, sources: list):
        super().__init__(
            f"Multiple files organized to '{path}': {', '.join(sources)}",
            code="LAYOUT_COLLISION",
            details={"path": path, "sources": sources}
        )


class PlanningUnsupportedError(AppForgeError):
    """Requested framework/database is not in the known scaffolding table"""

    def __init__(self, kind: str, value: str, fallback: str):
        super().__init__(
            f"Unsupported {kind} '{value}', falling back to '{fallback}'",
            code="PLANNING_UNSUPPORTED",
            details={"kind": kind, "value": value, "fallback": fallback}
        )


# ============================================
# Execution Errors
# ============================================

class ConnectionFailedError(AppForgeError):
    """Execution endpoint unreachable after exhausting retries"""

    def __init__(self, url: str, attempts: int = 0, reason: Optional[str] = None):
        message = f"Could not connect to terminal server at {url}"
        if attempts:
            message += f" after {attempts} attempt(s)"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            code="CONNECTION_FAILED",
            details={"url": url, "attempts": attempts, "reason": reason}
        )


class TransportClosedError(AppForgeError):
    """The underlying transport closed while writing"""

    def __init__(self, message: str = "Transport closed"):
        super().__init__(message, code="DISCONNECTED")


class InvalidStateTransitionError(AppForgeError):
    """Connection state machine rejected a transition"""

    def __init__(self, from_state: str, to_state: str):
        super().__init__(
            f"Invalid connection transition: {from_state} -> {to_state}",
            code="INVALID_STATE_TRANSITION",
            details={"from": from_state, "to": to_state}
        )


class CommandTimeoutError(AppForgeError):
    """A single command did not receive a response in time"""

    def __init__(self, command: str, timeout: float):
        super().__init__(
            f"Command timed out after {timeout}s",
            code="COMMAND_TIMEOUT",
            details={"command": command, "timeout": timeout}
        )


class CommandFailedError(AppForgeError):
    """The endpoint reported a failed command"""

    def __init__(self, command: str, output: str = "", code: str = "COMMAND_FAILED"):
        super().__init__(
            f"Command failed: {command}",
            code=code,
            details={"command": command, "output": output}
        )


class FileWriteFailedError(AppForgeError):
    """Writing one or more project files through the channel failed"""

    def __init__(self, failed_paths: list, pending_paths: Optional[list] = None):
        super().__init__(
            f"Failed to write {len(failed_paths)} file(s)",
            code="FILE_WRITE_FAILED",
            details={"failed_paths": failed_paths, "pending_paths": pending_paths or []}
        )


class ArchiveFailedError(AppForgeError):
    """Packaging the project into a downloadable archive failed"""

    def __init__(self, project_name: str, reason: str):
        super().__init__(
            f"Failed to create archive for '{project_name}': {reason}",
            code="ARCHIVE_FAILED",
            details={"project_name": project_name, "reason": reason}
        )
