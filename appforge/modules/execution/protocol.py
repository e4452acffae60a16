"""
Terminal Wire Protocol
JSON envelopes exchanged with the execution endpoint.

Outbound:
    {"type": "command", "command": str, "sessionId": str, "id": str}
    {"type": "resize", "rows": int, "cols": int}
    {"type": "key", "key": str}
    {"type": "paste", "data": str}
    {"type": "SIGINT"}

Inbound:
    {"type": "output", "content": str}
    {"type": "commandResponse", "id": str, "output": str, "success": bool}
    {"type": "projectStatus", "message": str}

Frames that are not JSON objects are treated as raw output.
"""

import json
import shlex
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from appforge.core.exceptions import AppForgeError, CommandFailedError


class MessageType(str, Enum):
    COMMAND = "command"
    RESIZE = "resize"
    KEY = "key"
    PASTE = "paste"
    SIGINT = "SIGINT"
    OUTPUT = "output"
    COMMAND_RESPONSE = "commandResponse"
    PROJECT_STATUS = "projectStatus"


class ErrorCode:
    COMMAND_FAILED = "COMMAND_FAILED"
    COMMAND_TIMEOUT = "COMMAND_TIMEOUT"
    CONNECTION_FAILED = "CONNECTION_FAILED"
    DISCONNECTED = "DISCONNECTED"
    SESSION_CANCELLED = "SESSION_CANCELLED"


def new_correlation_id() -> str:
    return f"cmd-{uuid.uuid4().hex}"


@dataclass
class CommandResponse:
    """Outcome of one command, resolved by the endpoint or synthesized locally"""
    correlation_id: str
    output: str = ""
    success: bool = True
    error_code: Optional[str] = None
    command: str = ""
    error: Optional[AppForgeError] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_error(cls, correlation_id: str, command: str, error: AppForgeError) -> "CommandResponse":
        return cls(
            correlation_id=correlation_id,
            output=error.message,
            success=False,
            error_code=error.code,
            command=command,
            error=error,
        )

    @property
    def is_connection_failure(self) -> bool:
        return self.error_code == ErrorCode.CONNECTION_FAILED

    def as_error(self) -> Optional[AppForgeError]:
        """The AppForgeError describing a failed response, None on success"""
        if self.success:
            return None
        if self.error is not None:
            return self.error
        return CommandFailedError(self.command, self.output, code=self.error_code or ErrorCode.COMMAND_FAILED)

    def raise_for_status(self) -> "CommandResponse":
        error = self.as_error()
        if error is not None:
            raise error
        return self


@dataclass
class InboundMessage:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Human readable content regardless of message type"""
        for key in ("content", "output", "message", "data"):
            value = self.payload.get(key)
            if isinstance(value, str):
                return value
        return ""


def parse_message(raw: Union[str, bytes]) -> InboundMessage:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return InboundMessage(type=MessageType.OUTPUT.value, payload={"content": raw})

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        return InboundMessage(type=MessageType.OUTPUT.value, payload={"content": raw})
    return InboundMessage(type=data["type"], payload=data)


def encode(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope)


# ============================================
# Outbound envelopes
# ============================================

def command_envelope(command: str, session_id: str, correlation_id: str) -> Dict[str, Any]:
    return {
        "type": MessageType.COMMAND.value,
        "command": command,
        "sessionId": session_id,
        "id": correlation_id,
    }


def resize_envelope(rows: int, cols: int) -> Dict[str, Any]:
    return {"type": MessageType.RESIZE.value, "rows": rows, "cols": cols}


def key_envelope(key: str) -> Dict[str, Any]:
    return {"type": MessageType.KEY.value, "key": key}


def paste_envelope(data: str) -> Dict[str, Any]:
    return {"type": MessageType.PASTE.value, "data": data}


def sigint_envelope() -> Dict[str, Any]:
    return {"type": MessageType.SIGINT.value}


# ============================================
# File materialization commands
# ============================================

def escape_shell_content(content: str) -> str:
    """Escape content for embedding inside a double-quoted shell string"""
    return (
        content
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("`", "\\`")
    )


def ensure_directory_command(path: str) -> str:
    return f"mkdir -p {shlex.quote(path)}"


def write_file_command(path: str, content: str) -> str:
    return f"printf '%s\\n' \"{escape_shell_content(content)}\" > {shlex.quote(path)}"
