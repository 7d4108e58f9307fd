# -*- coding: utf-8 -*-
"""
LDraw Packer Service

Goals:
- Resolve an uploaded LDraw model and every part/sub-model it references into
  one self-contained MPD document.
- Provision the LDraw library once at boot; refuse to serve without it.
- HTTP API: /health, /capabilities, /pack.

Environment variables:
- LDRAW_PATH                    (default: $HOME/ldraw/)
- LDRAW_LIBRARY_URL             (default: official complete.zip)
- LDRAW_PACKER_HOST             (default: 0.0.0.0)
- LDRAW_PACKER_HTTP_PORT / PORT (default: 3000)
- LDRAW_PACKER_TEMP_DIR         (default: <this folder>/temp)
- LDRAW_PACKER_MAX_UPLOAD_MB    (default: 10)
- LDRAW_PACKER_DEBUG            (default: off; "1" prints every file added to a pack)
"""
from __future__ import annotations

import asyncio
import os
import signal
import sys
import tempfile
import time
from pathlib import Path
from typing import Optional, Tuple

from aiohttp import web

import capabilities
import http_api
import pack_engine
from library_store import LibraryStore
from packer_config import DEFAULT_LIBRARY_URL, MATERIALS_FILE_NAME

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

RUNTIME_DIR = Path(__file__).resolve().parent

SERVER_START_TIME = time.time()


def _env_flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


_env_ldraw = (os.environ.get("LDRAW_PATH") or "").strip()
if _env_ldraw:
    LDRAW_PATH = Path(_env_ldraw).expanduser()
else:
    LDRAW_PATH = Path.home() / "ldraw"

LIBRARY_URL = (os.environ.get("LDRAW_LIBRARY_URL") or DEFAULT_LIBRARY_URL).strip()

HOST = (os.environ.get("LDRAW_PACKER_HOST") or "0.0.0.0").strip() or "0.0.0.0"
HTTP_PORT = int(
    (os.environ.get("LDRAW_PACKER_HTTP_PORT") or "").strip()
    or (os.environ.get("PORT") or "").strip()
    or "3000"
)

_env_temp = (os.environ.get("LDRAW_PACKER_TEMP_DIR") or "").strip()
TEMP_DIR = Path(_env_temp).expanduser() if _env_temp else (RUNTIME_DIR / "temp")

MAX_UPLOAD_MB = int((os.environ.get("LDRAW_PACKER_MAX_UPLOAD_MB") or "").strip() or "10")

DEBUG = _env_flag("LDRAW_PACKER_DEBUG")
pack_engine.DEBUG_TRACE = DEBUG

LIBRARY = LibraryStore(LDRAW_PATH, library_url=LIBRARY_URL)

# Shutdown coordination
_SHUTDOWN_EVENT: Optional[asyncio.Event] = None


def request_shutdown(reason: str = "") -> None:
    if _SHUTDOWN_EVENT is not None:
        _SHUTDOWN_EVENT.set()
    if reason:
        print(f"[SHUTDOWN] requested: {reason}", flush=True)


def build_app() -> web.Application:
    app = web.Application(client_max_size=MAX_UPLOAD_MB * 1024 * 1024)
    http_api.register_routes(app, ctx=sys.modules[__name__])
    return app


async def main(host: str = HOST, http_port: int = HTTP_PORT) -> int:
    print(f"[BOOT] LDRAW_PATH={LDRAW_PATH}", flush=True)
    print(f"[BOOT] TEMP_DIR={TEMP_DIR}", flush=True)

    # Library must be ready before any pack request is served.
    status = await asyncio.to_thread(LIBRARY.ensure_library)
    if not status.ready:
        print(f"[BOOT] Failed to start service: {status.error}", flush=True)
        return 1

    TEMP_DIR.mkdir(parents=True, exist_ok=True)

    global _SHUTDOWN_EVENT
    _SHUTDOWN_EVENT = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _sig() -> None:
        request_shutdown("signal")

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support.
            pass

    runner = web.AppRunner(build_app())
    await runner.setup()
    site = web.TCPSite(runner, host, http_port)
    await site.start()
    print(f"[BOOT] LDraw Packer Service running on http://{host}:{http_port}", flush=True)

    try:
        await _SHUTDOWN_EVENT.wait()
    finally:
        await runner.cleanup()
    return 0


# -----------------------------------------------------------------------------
# Smoke test (offline)
# -----------------------------------------------------------------------------

def _smoke_test_pack() -> Tuple[bool, str]:
    """
    Pack a tiny generated library end to end: one sub-model, one part found only
    by the lowercase retry, one inline declaration. No network, no real library.
    """
    with tempfile.TemporaryDirectory(prefix="ldraw_smoke_") as tmp:
        root = Path(tmp) / "ldraw"
        (root / "parts").mkdir(parents=True)
        (root / "models").mkdir()
        (root / MATERIALS_FILE_NAME).write_text("0 // materials\n", encoding="utf-8")
        (root / "parts" / "3001.dat").write_text("0 Brick 2 x 4\n", encoding="utf-8")
        (root / "models" / "sub.ldr").write_text(
            "0 FILE inline.ldr\n1 4 0 0 0 1 0 0 0 1 0 0 0 1 3001.DAT\n", encoding="utf-8"
        )
        model = Path(tmp) / "main.ldr"
        model.write_text(
            "0 FILE main.ldr\r\n1 16 0 0 0 1 0 0 0 1 0 0 0 1 sub.ldr\r\n"
            "1 16 0 0 0 1 0 0 0 1 0 0 0 1 inline.ldr\r\n",
            encoding="utf-8",
        )

        library = LibraryStore(root)
        try:
            packed = pack_engine.pack_file(model, library)
        except pack_engine.PackError as e:
            return False, f"pack failed: {e}"

        if "\r" in packed:
            return False, "line endings not normalized"
        if not packed.startswith("0 // materials\n"):
            return False, "materials block missing"
        # Case-insensitive file systems match 3001.DAT on the first pass.
        folded = packed.lower()
        for header in ("0 file models/sub.ldr", "0 file parts/3001.dat"):
            if header not in folded:
                return False, f"missing document header: {header}"
        if folded.index("0 file models/sub.ldr") > folded.index("0 file parts/3001.dat"):
            return False, "documents not in root-first order"
        return True, "ok"


def _run_smoke_test() -> int:
    required = ["http.health", "http.pack", "http.capabilities", "core.pack", "library.provision"]
    ok, note = capabilities.smoke_test_registry(required_ids=required)
    if not ok:
        print(f"[SMOKE] {note}", flush=True)
        return 1
    print("[SMOKE] capabilities registry OK", flush=True)

    ok, note = _smoke_test_pack()
    if not ok:
        print(f"[SMOKE] pack FAILED: {note}", flush=True)
        return 1
    print("[SMOKE] pack OK", flush=True)
    return 0


if __name__ == "__main__":
    # Smoke test short-circuit (must run BEFORE asyncio loop)
    if len(sys.argv) > 1 and sys.argv[1].strip().lower() in ("--smoke", "smoke"):
        raise SystemExit(_run_smoke_test())

    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
