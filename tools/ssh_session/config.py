"""
SSH Session Configuration

Configuration is loaded from environment variables, typically set via an
.env.ssh file in the working directory.

Environment Variables:
    SSH_HOST: Default server hostname/IP for one-shot commands
    SSH_PORT: SSH port (default: 22)
    SSH_USERNAME: SSH username
    SSH_PASSWORD: SSH password
    SSH_CONNECTION_TIMEOUT: Connect and handshake timeout in seconds (default: 10)
    SSH_KNOWN_HOSTS_POLICY: Host key policy (strict/auto_add/ignore, default: auto_add)
    SSH_KNOWN_HOSTS_FILE: known_hosts file to verify against (default: ~/.ssh/known_hosts)
    SSH_DEBUG: Enable debug logging (default: false)
"""

import base64
import os
from typing import Dict, Any
from pathlib import Path


KNOWN_HOSTS_POLICIES = ('strict', 'auto_add', 'ignore')


def _decode_env_value(value: str) -> str:
    """
    Decode environment variable value.
    Values prefixed with 'base64:' are base64-decoded so passwords may hold
    characters that do not survive a .env file.
    """
    if value.startswith('base64:'):
        try:
            return base64.b64decode(value[7:]).decode('utf-8')
        except Exception:
            return value
    return value


def _load_env_file(file_path: Path) -> None:
    """Load environment variables from a .env file."""
    if not file_path.exists():
        return

    with file_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key.strip(), _decode_env_value(value.strip()))


def _load_config_env():
    """
    Load environment variables from config files.

    Search order (first found wins for each variable):
    1. Current working directory .env.ssh
    2. Package's own config.env
    """
    _load_env_file(Path.cwd() / ".env.ssh")
    _load_env_file(Path(__file__).parent / "config.env")


# Auto-load config.env when module is imported
_load_config_env()


class SSHConfig:
    """SSH session configuration"""

    def __init__(self):
        self.host: str = os.getenv('SSH_HOST', '')
        self.port: int = int(os.getenv('SSH_PORT', '22'))
        self.username: str = os.getenv('SSH_USERNAME', '')
        self.password: str = os.getenv('SSH_PASSWORD', '')
        self.connection_timeout: float = float(os.getenv('SSH_CONNECTION_TIMEOUT', '10'))
        self.known_hosts_policy: str = os.getenv('SSH_KNOWN_HOSTS_POLICY', 'auto_add')
        self.known_hosts_file: str = os.getenv('SSH_KNOWN_HOSTS_FILE', '~/.ssh/known_hosts')
        self.debug: bool = os.getenv('SSH_DEBUG', '').lower() == 'true'


# Global configuration instance
_config = SSHConfig()


def get_config() -> Dict[str, Any]:
    """Get current configuration (excluding the password)"""
    return {
        'host': _config.host,
        'port': _config.port,
        'username': _config.username,
        'connection_timeout': _config.connection_timeout,
        'known_hosts_policy': _config.known_hosts_policy,
        'known_hosts_file': _config.known_hosts_file,
        'debug': _config.debug,
        'has_password': bool(_config.password),
    }


def set_config(new_config: Dict[str, Any]) -> None:
    """Set configuration (merges with existing config)"""
    # Keys are accepted with or without the ssh_ prefix
    def get_val(key: str) -> Any:
        return new_config.get(f'ssh_{key}') or new_config.get(key)

    if get_val('host'):
        _config.host = get_val('host')
    if get_val('port'):
        _config.port = int(get_val('port'))
    if get_val('username'):
        _config.username = get_val('username')
    if get_val('password'):
        _config.password = get_val('password')
    if get_val('connection_timeout'):
        _config.connection_timeout = float(get_val('connection_timeout'))
    if get_val('known_hosts_policy'):
        policy = get_val('known_hosts_policy')
        if policy not in KNOWN_HOSTS_POLICIES:
            raise ValueError(
                f"Invalid known_hosts_policy {policy!r}, expected one of: "
                f"{', '.join(KNOWN_HOSTS_POLICIES)}"
            )
        _config.known_hosts_policy = policy
    if get_val('known_hosts_file'):
        _config.known_hosts_file = get_val('known_hosts_file')
    if 'debug' in new_config:
        _config.debug = new_config['debug']


def reset_config() -> None:
    """Reset configuration to defaults (from environment variables)"""
    global _config
    _config = SSHConfig()


def get_host() -> str:
    """Get default SSH host"""
    return _config.host


def get_port() -> int:
    """Get SSH port"""
    return _config.port


def get_username() -> str:
    """Get SSH username"""
    return _config.username


def get_password() -> str:
    """Get SSH password"""
    return _config.password


def get_connection_timeout() -> float:
    """Get connection timeout in seconds"""
    return _config.connection_timeout


def get_known_hosts_policy() -> str:
    """Get known hosts verification policy"""
    return _config.known_hosts_policy


def get_known_hosts_file() -> str:
    """Get path of the known_hosts file"""
    return os.path.expanduser(_config.known_hosts_file)


def debug_log(message: str, *args: Any) -> None:
    """Debug log helper"""
    if _config.debug:
        if args:
            print(f'[SSH Session] {message}', *args)
        else:
            print(f'[SSH Session] {message}')
