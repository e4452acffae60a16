"""
Execution Module
Runs scaffolding commands and file writes against the remote terminal server,
with reconnection, per-command timeouts and a local archive fallback
"""

from appforge.modules.execution.connection import ConnectionManager, ConnectionState, VALID_TRANSITIONS
from appforge.modules.execution.channel import ExecutionChannel, FileWriteResult
from appforge.modules.execution.local_fallback import LocalMaterializer, ArchiveArtifact
from appforge.modules.execution.protocol import CommandResponse, ErrorCode, MessageType, escape_shell_content
from appforge.modules.execution.transport import Transport, WebSocketTransport, connect_websocket

__all__ = [
    # Connection
    'ConnectionManager',
    'ConnectionState',
    'VALID_TRANSITIONS',
    'Transport',
    'WebSocketTransport',
    'connect_websocket',

    # Session pipeline
    'ExecutionChannel',
    'FileWriteResult',
    'LocalMaterializer',
    'ArchiveArtifact',

    # Protocol
    'CommandResponse',
    'ErrorCode',
    'MessageType',
    'escape_shell_content',
]
