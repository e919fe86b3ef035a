"""Threaded SFTP server over a local directory, for backend tests.

Authentication always succeeds. Every SFTP path is mapped below the served
directory, so ``/`` on the wire is the directory itself.
"""

from __future__ import annotations

import contextlib
import os
import socket
import threading
from pathlib import PurePosixPath
from typing import Any, Callable, Optional

import paramiko
from paramiko import SFTPAttributes, SFTPHandle, SFTPServer, SFTPServerInterface


def _sftp_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn OSError into the SFTP status code paramiko expects."""

    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)

    return wrapper


class _AllowAll(paramiko.ServerInterface):
    def get_allowed_auths(self, username: str) -> str:
        return "password,publickey"

    def check_auth_password(self, username: str, password: str) -> int:
        return paramiko.AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        return paramiko.AUTH_SUCCESSFUL

    def check_channel_request(self, kind: str, chanid: int) -> int:
        return paramiko.OPEN_SUCCEEDED


class _Handle(SFTPHandle):
    @_sftp_errors
    def stat(self) -> SFTPAttributes:
        return SFTPAttributes.from_stat(os.fstat(self.readfile.fileno()))

    def chattr(self, attr: SFTPAttributes) -> int:
        return paramiko.SFTP_OK


def _interface_for(directory: str) -> type[SFTPServerInterface]:
    """SFTP interface class serving ``directory``."""

    def local(path: str) -> str:
        parts = [p for p in PurePosixPath("/", path).parts[1:] if p not in (".", "..")]
        return os.path.join(directory, *parts)

    class _Directory(SFTPServerInterface):
        @_sftp_errors
        def list_folder(self, path: str) -> list[SFTPAttributes]:
            base = local(path)
            entries = []
            for name in os.listdir(base):
                attr = SFTPAttributes.from_stat(os.stat(os.path.join(base, name)))
                attr.filename = name
                entries.append(attr)
            return entries

        @_sftp_errors
        def stat(self, path: str) -> SFTPAttributes:
            return SFTPAttributes.from_stat(os.stat(local(path)))

        @_sftp_errors
        def lstat(self, path: str) -> SFTPAttributes:
            return SFTPAttributes.from_stat(os.lstat(local(path)))

        @_sftp_errors
        def open(self, path: str, flags: int, attr: SFTPAttributes) -> SFTPHandle:
            fd = os.open(local(path), flags, 0o644)
            if flags & os.O_WRONLY:
                mode = "wb"
            elif flags & os.O_RDWR:
                mode = "rb+"
            else:
                mode = "rb"
            handle = _Handle(flags)
            handle.filename = local(path)
            handle.readfile = handle.writefile = os.fdopen(fd, mode)
            return handle

        @_sftp_errors
        def remove(self, path: str) -> int:
            os.remove(local(path))
            return paramiko.SFTP_OK

        @_sftp_errors
        def rename(self, oldpath: str, newpath: str) -> int:
            if os.path.exists(local(newpath)):
                return paramiko.SFTP_FAILURE
            os.rename(local(oldpath), local(newpath))
            return paramiko.SFTP_OK

        @_sftp_errors
        def posix_rename(self, oldpath: str, newpath: str) -> int:
            os.replace(local(oldpath), local(newpath))
            return paramiko.SFTP_OK

        @_sftp_errors
        def mkdir(self, path: str, attr: SFTPAttributes) -> int:
            os.mkdir(local(path))
            return paramiko.SFTP_OK

        @_sftp_errors
        def rmdir(self, path: str) -> int:
            os.rmdir(local(path))
            return paramiko.SFTP_OK

        def chattr(self, path: str, attr: SFTPAttributes) -> int:
            return paramiko.SFTP_OK

    return _Directory


class SFTPTestServer:
    """SFTP server on a free localhost port, serving ``directory``.

    :param directory: Local directory exposed as the server's ``/``.
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self.host_key = paramiko.RSAKey.generate(2048)
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._transports: list[paramiko.Transport] = []

    @property
    def port(self) -> int:
        return int(self._socket.getsockname()[1])

    @property
    def known_hosts(self) -> str:
        """known_hosts line for this server."""
        return f"[127.0.0.1]:{self.port} {self.host_key.get_name()} {self.host_key.get_base64()}"

    def start(self) -> SFTPTestServer:
        self._socket.listen(5)
        self._socket.settimeout(0.5)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        with contextlib.suppress(OSError):
            self._socket.close()
        for transport in self._transports:
            transport.close()
        if self._thread is not None:
            self._thread.join(timeout=5)

    def __enter__(self) -> SFTPTestServer:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _serve(self) -> None:
        interface = _interface_for(self.directory)
        while not self._stop.is_set():
            try:
                conn, _addr = self._socket.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            transport = paramiko.Transport(conn)
            transport.add_server_key(self.host_key)
            transport.set_subsystem_handler("sftp", SFTPServer, interface)
            try:
                transport.start_server(server=_AllowAll())
            except paramiko.SSHException:
                transport.close()
                continue
            self._transports.append(transport)
