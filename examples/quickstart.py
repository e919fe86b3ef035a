"""Quickstart: list, presign and copy through the service handlers.

Demonstrates:
- Building the services from a ServiceConfig
- Calling handlers with request bodies, as a host runtime would
- Copying a file between two local roots
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from remote_dispatch import ServiceConfig, build_services

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    with tempfile.TemporaryDirectory() as src, tempfile.TemporaryDirectory() as dst:
        Path(src, "reports").mkdir()
        Path(src, "reports", "q1.csv").write_bytes(b"revenue,profit\n100,20\n")
        Path(src, "reports", "q2.csv").write_bytes(b"revenue,profit\n120,25\n")

        handlers = build_services(ServiceConfig()).handlers()
        print("Handlers:", sorted(handlers))

        # List a directory on a local root
        listing = handlers["Storage/list"]({"uri": f"fs:///reports/?root={src}"})
        for entry in listing["entries"]:
            print(f"  {entry['path']} ({entry['metadata']['contentLength']} bytes)")

        # Presign a plain HTTPS download; no request is sent
        presigned = handlers["Storage/presignRead"](
            {"uri": "https://downloads.example.com/releases/v1.tar.gz", "expiration": "15m"}
        )
        print(f"Presigned: {presigned['method']} {presigned['uri']}")

        # Copy into an existing directory: the source file name is kept
        Path(dst, "archive").mkdir()
        handlers["StorageExtra/copy"](
            {"source": f"fs:///reports/q1.csv?root={src}", "destination": f"fs:///archive/?root={dst}"}
        )
        print("Copied:", sorted(str(p.relative_to(dst)) for p in Path(dst).rglob("*") if p.is_file()))

    print("Done! Temp directories cleaned up automatically.")
