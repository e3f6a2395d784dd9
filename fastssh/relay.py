"""Pass-through of an interactive remote shell to the local terminal."""

from __future__ import annotations

import contextlib
import os
import select
import shutil
import signal
import socket
import sys
import threading

from .session import RemoteSession

try:
    import termios
    import tty
except ImportError:  # Windows
    termios = None
    tty = None


class SessionInterrupted(Exception):
    def __init__(self, signum: int):
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum


@contextlib.contextmanager
def _interrupt_on_signals():
    """Turn SIGTERM/SIGHUP into an exception so callers' cleanup still runs."""

    def _raise(signum, frame):
        raise SessionInterrupted(signum)

    previous = {}
    for name in ("SIGTERM", "SIGHUP"):
        sig = getattr(signal, name, None)
        if sig is not None:
            previous[sig] = signal.signal(sig, _raise)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def interactive_shell(session: RemoteSession) -> int:
    """Relay stdin/stdout to a remote shell until it closes. Returns its exit status."""
    size = shutil.get_terminal_size()
    channel = session.invoke_shell(width=size.columns, height=size.lines)
    try:
        with _interrupt_on_signals():
            if termios is not None and sys.stdin.isatty():
                _posix_shell(channel)
            else:
                _threaded_shell(channel)
    except KeyboardInterrupt:
        return 130
    except SessionInterrupted as e:
        return 128 + e.signum
    finally:
        channel.close()
    return channel.recv_exit_status() if channel.exit_status_ready() else 0


def _posix_shell(channel) -> None:
    stdin_fd, stdout_fd = sys.stdin.fileno(), sys.stdout.fileno()
    old_attrs = termios.tcgetattr(stdin_fd)

    def _resize(signum, frame):
        size = shutil.get_terminal_size()
        channel.resize_pty(width=size.columns, height=size.lines)

    previous_winch = signal.signal(signal.SIGWINCH, _resize)
    try:
        tty.setraw(stdin_fd, termios.TCSADRAIN)
        channel.settimeout(0.0)
        while True:
            readable, _, _ = select.select([channel, stdin_fd], [], [])
            if channel in readable:
                try:
                    data = channel.recv(1024)
                except socket.timeout:
                    continue
                if not data:
                    break
                os.write(stdout_fd, data)
            if stdin_fd in readable:
                data = os.read(stdin_fd, 1024)
                if not data:
                    break
                channel.send(data)
    finally:
        signal.signal(signal.SIGWINCH, previous_winch)
        termios.tcsetattr(stdin_fd, termios.TCSADRAIN, old_attrs)


def _threaded_shell(channel) -> None:
    def _send_stdin():
        # The remote side may close first; a failed send just ends this thread.
        with contextlib.suppress(OSError, EOFError):
            while True:
                data = sys.stdin.read(1)
                if not data:
                    channel.shutdown_write()
                    break
                channel.send(data)

    sender = threading.Thread(target=_send_stdin, daemon=True)
    sender.start()
    while True:
        data = channel.recv(256)
        if not data:
            break
        sys.stdout.buffer.write(data)
        sys.stdout.flush()
    sender.join(timeout=0.5)
