"""
SSH Session Module

A single password-authenticated SSH connection that runs commands one at a
time and captures their output.

Example:
    from ssh_session import SSHSession

    session = SSHSession()
    if session.connect("10.0.0.5", 22) and session.authenticate("admin", "secret"):
        print(session.execute_command("uptime"))
    session.disconnect()

Operational failures never raise: connect/authenticate return False and
execute_command returns one of the fixed status messages in SessionError.
Reading command output blocks until the remote side closes the stream; there
is no read timeout, so a command that never exits blocks the caller.
"""

import socket
import threading
import time
import warnings
from typing import Optional, Union

try:
    import paramiko
except ImportError:
    paramiko = None

from .config import (
    get_connection_timeout,
    get_known_hosts_file,
    get_known_hosts_policy,
    debug_log,
)
from .types import CapabilityUnavailable, CommandResult, SessionError


def transport_available() -> bool:
    """Check whether the SSH transport library can be used in this process"""
    return paramiko is not None


def _known_hosts_name(host: str, port: int) -> str:
    """Name under which a server is recorded in known_hosts"""
    if port == 22:
        return host
    return f"[{host}]:{port}"


class SSHSession:
    """Password-authenticated SSH session owning one paramiko transport"""

    def __init__(self):
        if not transport_available():
            raise CapabilityUnavailable(
                "paramiko is not installed, not able to connect to servers"
            )
        self.transport: Optional[paramiko.Transport] = None
        self.connected: bool = False
        self.authenticated: bool = False
        self.last_error: Optional[SessionError] = None
        self._host_keys = paramiko.HostKeys()

    def __enter__(self) -> 'SSHSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    def connect(self, host: str, port: Union[int, str] = 22) -> bool:
        """
        Open a transport connection to host:port.

        A session that is already connected is disconnected first.

        Returns:
            True if the connection was established, False otherwise
        """
        if self.connected:
            debug_log("Already connected, closing previous transport before reconnecting")
            self.disconnect()

        sock = None
        transport = None
        try:
            port = int(port)
            timeout = get_connection_timeout()
            debug_log(f"Connecting to {host}:{port}")

            sock = socket.create_connection((host, port), timeout=timeout)
            transport = paramiko.Transport(sock)
            transport.start_client(timeout=timeout)
            self._verify_host_key(host, port, transport.get_remote_server_key())
        except Exception as e:
            debug_log(f"Connection to {host}:{port} failed: {e}")
            if transport is not None:
                self._close_quietly(transport)
            elif sock is not None:
                self._close_quietly(sock)
            self.last_error = SessionError.CONNECT_FAILED
            return False

        self.transport = transport
        self.connected = True
        self.authenticated = False
        self.last_error = None
        debug_log(f"Connected to {host}:{port}")
        return True

    def authenticate(self, username: str, password: str) -> bool:
        """
        Authenticate the current connection with a password.

        A rejected credential tears the connection down; reconnect to retry.

        Returns:
            True if authenticated, False otherwise
        """
        if not self.connected:
            return False

        try:
            debug_log(f"Authenticating as {username}")
            self.transport.auth_password(username, password)
            if not self.transport.is_authenticated():
                raise paramiko.AuthenticationException(
                    "Server requires further authentication"
                )
        except Exception as e:
            debug_log(f"Authentication as {username} failed: {e}")
            self.disconnect()
            self.last_error = SessionError.AUTH_REJECTED
            return False

        self.authenticated = True
        self.last_error = None
        debug_log(f"Authenticated as {username}")
        return True

    def run(self, command: str) -> CommandResult:
        """
        Execute a command and capture its standard output.

        Args:
            command: Passed verbatim to the remote shell

        Returns:
            CommandResult with the output on success, or the error kind
        """
        if not self.connected:
            return CommandResult.failure(SessionError.NOT_CONNECTED)
        if not self.authenticated:
            return CommandResult.failure(SessionError.NOT_AUTHENTICATED)

        start_time = time.time()
        channel = None
        try:
            debug_log(f"Executing command ({len(command)} chars)")
            channel = self.transport.open_session()
            channel.exec_command(command)
            # stdout and stderr share one receive window; stderr must be drained
            # or the remote side stalls before closing stdout
            stderr_drain = threading.Thread(
                target=self._discard,
                args=(channel.makefile_stderr('rb'),),
                daemon=True,
            )
            stderr_drain.start()
            with channel.makefile('rb') as stdout:
                output = stdout.read()
            exit_code = channel.recv_exit_status()
            stderr_drain.join()
        except Exception as e:
            debug_log(f"Command execution failed: {e}")
            if channel is not None:
                self._close_quietly(channel)
            self.disconnect()
            self.last_error = SessionError.EXEC_STREAM_FAILED
            return CommandResult.failure(
                SessionError.EXEC_STREAM_FAILED,
                duration_ms=int((time.time() - start_time) * 1000),
            )

        self._close_quietly(channel)
        duration_ms = int((time.time() - start_time) * 1000)
        debug_log(f"Command completed: exit_code={exit_code}")
        self.last_error = None
        return CommandResult(
            success=True,
            output=output.decode('utf-8', errors='replace'),
            exit_code=exit_code,
            duration_ms=duration_ms,
        )

    def execute_command(self, command: str) -> str:
        """
        Execute a command and return its output.

        Returns:
            The command's standard output, or a status message when the
            session is not connected, not authenticated, or the command
            could not be started
        """
        return self.run(command).text

    def disconnect(self) -> None:
        """Close the transport. Does nothing when already disconnected."""
        if not self.connected:
            return

        self._close_quietly(self.transport)
        self.transport = None
        self.connected = False
        self.authenticated = False
        debug_log("Disconnected")

    def _verify_host_key(self, host: str, port: int, key: 'paramiko.PKey') -> None:
        """
        Check the server key against known hosts.

        Raises:
            paramiko.BadHostKeyException: If the host is known with another key
            paramiko.SSHException: If the host is unknown under the strict policy
        """
        name = _known_hosts_name(host, port)

        for host_keys in (self._host_keys, self._load_known_hosts()):
            entry = host_keys.lookup(name)
            if entry is None:
                continue
            expected = entry.get(key.get_name())
            if expected is None:
                continue
            if expected != key:
                raise paramiko.BadHostKeyException(name, key, expected)
            return

        policy = get_known_hosts_policy()
        fingerprint = key.get_fingerprint().hex()
        if policy == 'strict':
            raise paramiko.SSHException(
                f"Server {name} not found in known_hosts ({key.get_name()} {fingerprint})"
            )
        if policy == 'auto_add':
            self._host_keys.add(name, key.get_name(), key)
            debug_log(f"Adding {key.get_name()} host key for {name}: {fingerprint}")
        else:
            warnings.warn(f"Unknown {key.get_name()} host key for {name}: {fingerprint}")
            debug_log(f"Warning: unknown {key.get_name()} host key for {name}: {fingerprint}")

    @staticmethod
    def _load_known_hosts() -> 'paramiko.HostKeys':
        host_keys = paramiko.HostKeys()
        path = get_known_hosts_file()
        try:
            host_keys.load(path)
        except FileNotFoundError:
            pass
        except (IOError, paramiko.SSHException) as e:
            debug_log(f"Warning: Failed to read known_hosts {path}: {e}")
        return host_keys

    @staticmethod
    def _discard(stream) -> None:
        """Read a channel stream to EOF, dropping the data"""
        try:
            with stream:
                while stream.read(32768):
                    pass
        except Exception as e:
            debug_log(f"Warning: Failed to drain stderr: {e}")

    @staticmethod
    def _close_quietly(resource) -> None:
        try:
            resource.close()
        except Exception as e:
            debug_log(f"Warning: Failed to close {type(resource).__name__}: {e}")
