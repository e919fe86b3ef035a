"""Backend implementations.

Third-party clients are imported on first use, so every backend can be
registered without its optional extra installed.
"""

from remote_dispatch.backends._http import HttpBackend
from remote_dispatch.backends._local import LocalBackend
from remote_dispatch.backends._memory import MemoryBackend
from remote_dispatch.backends._s3 import S3Backend
from remote_dispatch.backends._sftp import HostKeyPolicy, SFTPBackend

__all__ = [
    "HostKeyPolicy",
    "HttpBackend",
    "LocalBackend",
    "MemoryBackend",
    "S3Backend",
    "SFTPBackend",
]
