from __future__ import annotations

from dataclasses import dataclass

import paramiko

# Errors a paramiko connect or exec can raise for network/protocol reasons.
SSH_ERRORS = (paramiko.SSHException, OSError, EOFError)
# Worth retrying: socket-level failures. Authentication failures are not.
TRANSIENT_ERRORS = (OSError, EOFError)


@dataclass
class CommandResult:
    exit_code: int | None
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        # Some servers never report an exit status; treat that as success.
        return self.exit_code in (0, None)


class RemoteSession:
    """
    One authenticated SSH connection.

    Password and key logins never fall back to the agent or to other keys in
    ~/.ssh, so a successful login proves the supplied credential works.
    """

    def __init__(self, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self._client: paramiko.SSHClient | None = None

    def connect(
        self,
        host: str,
        user: str,
        port: int = 22,
        password: str | None = None,
        pkey: paramiko.PKey | None = None,
    ) -> None:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=host,
                port=port,
                username=user,
                password=password,
                pkey=pkey,
                allow_agent=False,
                look_for_keys=False,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
            )
        except BaseException:
            client.close()
            raise
        self._client = client

    def exec_command(self, command: str) -> CommandResult:
        if self._client is None:
            raise RuntimeError("SSH session is not connected")
        _, stdout, stderr = self._client.exec_command(command, timeout=self.timeout)
        # Drain both streams first; a full channel window would block the exit status.
        out = stdout.read().decode("utf-8", "replace")
        err = stderr.read().decode("utf-8", "replace")
        exit_code = stdout.channel.recv_exit_status()
        return CommandResult(exit_code if exit_code != -1 else None, out, err)

    def invoke_shell(self, width: int = 80, height: int = 24) -> paramiko.Channel:
        if self._client is None:
            raise RuntimeError("SSH session is not connected")
        return self._client.invoke_shell(term="xterm-256color", width=width, height=height)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None

    def __enter__(self) -> RemoteSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
