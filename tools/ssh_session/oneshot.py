"""
One-shot command execution

Connects, authenticates, runs a single command and disconnects, falling back
to the configured defaults for anything not passed explicitly.

Example:
    from ssh_session import execute_command_once

    result = json.loads(execute_command_once("df -h", host="10.0.0.5"))
    print(result['output'])
"""

import json
import time
from typing import Optional, Union

from .config import (
    get_host,
    get_port,
    get_username,
    get_password,
    debug_log,
)
from .session import SSHSession
from .types import CommandResult, SessionError


def execute_command_once(
    command: str,
    host: Optional[str] = None,
    port: Optional[Union[int, str]] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """
    Run a single command on a server.

    Args:
        command: The shell command to execute
        host: Server hostname/IP (default: SSH_HOST)
        port: Server port (default: SSH_PORT)
        username: Login user (default: SSH_USERNAME)
        password: Login password (default: SSH_PASSWORD)

    Returns:
        JSON string with host, success, output, error, exit_code, duration_ms
    """
    host = host or get_host()
    port = port or get_port()
    username = username or get_username()
    password = password if password is not None else get_password()

    if not host:
        return json.dumps({'host': host, 'success': False, 'error': 'SSH host not configured'})
    if not username:
        return json.dumps({'host': host, 'success': False, 'error': 'SSH username not configured'})

    start_time = time.time()

    with SSHSession() as session:
        if not session.connect(host, port):
            result = CommandResult.failure(SessionError.CONNECT_FAILED)
        elif not session.authenticate(username, password):
            result = CommandResult.failure(SessionError.AUTH_REJECTED)
        else:
            result = session.run(command)

    result.duration_ms = int((time.time() - start_time) * 1000)
    debug_log(f"One-shot command on {host} finished: success={result.success}")

    return json.dumps({'host': host, **result.to_dict()})
