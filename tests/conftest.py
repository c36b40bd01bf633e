"""
Shared fixtures: configuration isolation and an in-process SSH server.

The server is built on paramiko's ServerInterface and answers a handful of
canned commands, so no system sshd is needed.
"""

import socket
import threading
import time
from typing import Dict, List, Optional

import paramiko
import pytest

from ssh_session import config


TEST_HOST = "127.0.0.1"
TEST_USER = "testuser"
TEST_PASS = "testpass"
# Authenticates, but every channel open request is refused
NO_CHANNEL_USER = "nochannel"
TEST_USERS = {TEST_USER: TEST_PASS, NO_CHANNEL_USER: TEST_PASS}
# Larger than paramiko's receive window, so stderr must be read for it to arrive
FLOOD_BYTES = 4 * 1024 * 1024


class _TestSSHServer(paramiko.ServerInterface):
    """Minimal SSH server that accepts password auth and answers canned commands"""

    def __init__(self, users: Dict[str, str]) -> None:
        self.users = users
        self.username: Optional[str] = None

    def get_allowed_auths(self, username: str) -> str:
        return "password"

    def check_auth_password(self, username: str, password: str) -> int:
        if self.users.get(username) == password:
            self.username = username
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind: str, chanid: int) -> int:
        if kind == "session" and self.username != NO_CHANNEL_USER:
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_channel_exec_request(self, channel: paramiko.Channel, command: bytes) -> bool:
        cmd_str = command.decode("utf-8") if isinstance(command, bytes) else command
        threading.Thread(
            target=self._run_command, args=(channel, cmd_str), daemon=True
        ).start()
        return True

    def _run_command(self, channel: paramiko.Channel, command: str) -> None:
        # Let the exec reply reach the client before any output does
        time.sleep(0.1)
        try:
            if command.startswith("echo "):
                channel.sendall(command[5:].encode("utf-8") + b"\n")
                channel.send_exit_status(0)
            elif command == "whoami":
                channel.sendall(f"{self.username}\n".encode("utf-8"))
                channel.send_exit_status(0)
            elif command == "flood":
                channel.sendall_stderr(b"x" * FLOOD_BYTES)
                channel.sendall(b"done\n")
                channel.send_exit_status(0)
            elif command.startswith("exit "):
                channel.send_exit_status(int(command[5:]))
            else:
                channel.sendall_stderr(f"{command}: command not found\n".encode("utf-8"))
                channel.send_exit_status(127)
        finally:
            channel.close()


class SSHTestServer:
    """Runs an in-process SSH server on an OS-assigned port"""

    def __init__(self, host: str = TEST_HOST, users: Optional[Dict[str, str]] = None) -> None:
        self.host = host
        self.users = users or dict(TEST_USERS)
        self.host_key = paramiko.RSAKey.generate(2048)
        self._server_socket: Optional[socket.socket] = None
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None
        self._transports: List[paramiko.Transport] = []
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return self._server_socket.getsockname()[1]

    def start(self) -> None:
        self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_socket.settimeout(1.0)
        self._server_socket.bind((self.host, 0))
        self._server_socket.listen(5)
        self._running = True

        self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._accept_thread.start()

    def stop(self) -> None:
        self._running = False

        with self._lock:
            for transport in list(self._transports):
                transport.close()
            self._transports.clear()

        if self._server_socket:
            self._server_socket.close()

        if self._accept_thread:
            self._accept_thread.join(timeout=5)
            self._accept_thread = None

    def _accept_loop(self) -> None:
        while self._running:
            try:
                client_sock, _ = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            threading.Thread(
                target=self._handle_client, args=(client_sock,), daemon=True
            ).start()

    def _handle_client(self, client_sock: socket.socket) -> None:
        transport = paramiko.Transport(client_sock)
        transport.add_server_key(self.host_key)
        with self._lock:
            self._transports.append(transport)
        try:
            transport.start_server(server=_TestSSHServer(users=self.users))
            while self._running and transport.is_active():
                time.sleep(0.1)
        except (paramiko.SSHException, EOFError, OSError):
            pass
        finally:
            with self._lock:
                if transport in self._transports:
                    self._transports.remove(transport)
            transport.close()


@pytest.fixture(scope="session")
def ssh_server():
    """In-process SSH server shared by the whole test run"""
    server = SSHTestServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def closed_port() -> int:
    """A local port with nothing listening on it"""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((TEST_HOST, 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Point host key checks at an empty known_hosts file and reset afterwards"""
    config.reset_config()
    config.set_config({
        'known_hosts_file': str(tmp_path / "known_hosts"),
        'known_hosts_policy': 'auto_add',
        'connection_timeout': 5,
        'debug': True,
    })
    yield
    config.reset_config()
