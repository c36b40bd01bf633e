"""
Type definitions for SSH session results
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class SessionError(str, Enum):
    """Failure categories reported by SSHSession operations"""
    CONNECT_FAILED = 'connect_failed'
    AUTH_REJECTED = 'auth_rejected'
    EXEC_STREAM_FAILED = 'exec_stream_failed'
    NOT_CONNECTED = 'not_connected'
    NOT_AUTHENTICATED = 'not_authenticated'

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    SessionError.CONNECT_FAILED: "Could not connect to SSH server",
    SessionError.AUTH_REJECTED: "Authentication to SSH server failed",
    SessionError.EXEC_STREAM_FAILED: "Command execution failed, disconnecting",
    SessionError.NOT_CONNECTED: "Not connected to SSH server",
    SessionError.NOT_AUTHENTICATED: "Not authenticated to SSH server",
}


class CapabilityUnavailable(RuntimeError):
    """Raised when the SSH transport library cannot be loaded"""


@dataclass
class CommandResult:
    """Outcome of a single remote command"""
    success: bool
    output: str = ''
    error: Optional[SessionError] = None
    exit_code: int = -1
    duration_ms: int = 0

    @classmethod
    def failure(cls, error: SessionError, duration_ms: int = 0) -> 'CommandResult':
        return cls(success=False, error=error, duration_ms=duration_ms)

    @property
    def text(self) -> str:
        """Command output on success, otherwise the status message of the error"""
        if self.success:
            return self.output
        return self.error.message

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['error'] = self.error.message if self.error else None
        return data
