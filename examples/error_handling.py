"""Error handling: the error taxonomy and how failures are classified.

Demonstrates catching typed errors from the services, and how handler
failures surface as permanent outcomes with a status code, or as
retryable ones.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from remote_dispatch import (
    CopyRequest,
    DispatchError,
    HandlerError,
    InvalidLocation,
    ListRequest,
    NotFound,
    Permanent,
    ServiceConfig,
    UnsupportedScheme,
    build_services,
    classify,
)

if __name__ == "__main__":
    services = build_services(ServiceConfig())

    with tempfile.TemporaryDirectory() as tmp:
        Path(tmp, "notes.txt").write_bytes(b"not a directory")

        # --- Typed errors from the service API ---
        try:
            missing = CopyRequest(source=f"fs:///missing.txt?root={tmp}", destination=f"fs:///out.txt?root={tmp}")
            services.copy.copy(missing)
        except NotFound as exc:
            print(f"NotFound: {exc}")
            print(f"  path={exc.path}, backend={exc.backend}")

        try:
            services.storage.list(ListRequest(location="gopher://example.com/"))
        except UnsupportedScheme as exc:
            print(f"\nUnsupportedScheme: {exc}")

        try:
            services.storage.list(ListRequest(location="just/a/path"))
        except InvalidLocation as exc:
            print(f"\nInvalidLocation: {exc}")

        # --- Classification: what a host runtime would report ---
        for error in (NotFound("gone"), UnsupportedScheme("nope"), ConnectionResetError("reset")):
            print(f"\nclassify({type(error).__name__}) -> {classify(error)}")

        # --- Handlers raise HandlerError carrying the outcome ---
        handlers = services.handlers()
        bodies = [
            {"uri": "gopher://example.com/"},
            {"uri": f"fs:///notes.txt/?root={tmp}"},
            {},
        ]
        for body in bodies:
            try:
                handlers["Storage/list"](body)
            except HandlerError as exc:
                outcome = exc.outcome
                kind = f"permanent {outcome.code}" if isinstance(outcome, Permanent) else "retryable"
                print(f"\n{body!r} -> {kind}: {outcome.message}")
                assert isinstance(exc.__cause__, DispatchError)

    print("\nDone!")
