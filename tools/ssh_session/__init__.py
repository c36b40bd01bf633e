"""
SSH Session - Remote Command Execution

Password-authenticated SSH sessions that run commands synchronously and
capture their output.

Example:
    from ssh_session import SSHSession

    with SSHSession() as session:
        if session.connect("10.0.0.5", 22) and session.authenticate("admin", "secret"):
            print(session.execute_command("whoami"))
"""

from .config import get_config, set_config, reset_config

from .types import CapabilityUnavailable, CommandResult, SessionError

from .session import SSHSession, transport_available

from .oneshot import execute_command_once

__all__ = [
    # Configuration
    'get_config',
    'set_config',
    'reset_config',

    # Types
    'CapabilityUnavailable',
    'CommandResult',
    'SessionError',

    # Session
    'SSHSession',
    'transport_available',
    'execute_command_once',
]
