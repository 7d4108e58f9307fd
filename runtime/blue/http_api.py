# -*- coding: utf-8 -*-
"""
HTTP API for the LDraw packer service.

Design:
- No import of server.py (avoids circular imports).
- server.py passes ctx=sys.modules[__name__] to register_routes(); tests pass any
  namespace exposing LIBRARY, TEMP_DIR and SERVER_START_TIME.
- Packing is synchronous file I/O; it runs in a worker thread so the event loop
  keeps serving /health while a large model is being packed.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Tuple

from aiohttp import web

import capabilities
import upload_pipeline
from pack_engine import (
    InputUnreadable,
    LibraryUnavailable,
    PackError,
    ReferenceNotFound,
)
from packer_config import DEFAULT_MODEL_NAME, SERVICE_NAME
from path_engine import now_iso


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Filename",
}

ERROR_STATUS = {
    InputUnreadable: 400,
    ReferenceNotFound: 422,
    LibraryUnavailable: 503,
}


def _json(payload: Dict[str, Any], *, status: int = 200) -> web.Response:
    resp = web.json_response(payload, status=status)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    return resp


def status_for_error(err: PackError) -> int:
    for cls, status in ERROR_STATUS.items():
        if isinstance(err, cls):
            return status
    return 500


async def read_model_input(request: web.Request) -> Tuple[str, str]:
    """
    Returns (file name, model text) from either a multipart upload (field "model")
    or a raw text body named by the X-Filename header.
    """
    if request.content_type.startswith("multipart/"):
        reader = await request.multipart()
        while True:
            field = await reader.next()
            if field is None:
                raise InputUnreadable("Expected a 'model' field.")
            if field.name == "model":
                break

        file_name = field.filename or DEFAULT_MODEL_NAME
        data = bytearray()
        while True:
            chunk = await field.read_chunk(size=1024 * 1024)
            if not chunk:
                break
            data.extend(chunk)
        return file_name, upload_pipeline.decode_model_bytes(bytes(data))

    file_name = (request.headers.get("X-Filename") or "").strip() or DEFAULT_MODEL_NAME
    data = await request.read()
    return file_name, upload_pipeline.decode_model_bytes(data)


def register_routes(app: web.Application, *, ctx) -> None:
    """
    Register aiohttp routes on the given app.
    """

    async def handle_health(request: web.Request) -> web.Response:
        payload = {
            "ok": True,
            "status": "ok",
            "service": SERVICE_NAME,
            "ldrawPath": str(ctx.LIBRARY.root),
            "ldrawExists": ctx.LIBRARY.is_ready(),
            "uptime_s": max(0, int(time.time() - ctx.SERVER_START_TIME)),
            "timestamp": now_iso(),
        }
        return _json(payload)

    async def handle_get_capabilities(request: web.Request) -> web.Response:
        return _json({"ok": True, "capabilities": capabilities.get_registry_json()})

    async def handle_pack_options(request: web.Request) -> web.Response:
        return web.Response(status=204, headers=CORS_HEADERS)

    async def handle_pack(request: web.Request) -> web.Response:
        try:
            file_name, content = await read_model_input(request)
        except PackError as e:
            return _json(e.to_payload(), status=status_for_error(e))
        except (ValueError, UnicodeError) as e:
            err = InputUnreadable(f"Could not read request body: {e!r}")
            return _json(err.to_payload(), status=400)

        print(f"[HTTP] Packing model: {file_name}", flush=True)

        try:
            result = await asyncio.to_thread(
                upload_pipeline.pack_uploaded_model,
                ctx.LIBRARY,
                ctx.TEMP_DIR,
                file_name,
                content,
            )
        except PackError as e:
            print(f"[HTTP] Packing failed ({e.kind}): {e}", flush=True)
            return _json(e.to_payload(), status=status_for_error(e))
        except Exception as e:
            print(f"[HTTP] Packing error: {e!r}", flush=True)
            return _json({"ok": False, "error": "Failed to pack model", "details": str(e)}, status=500)

        return _json(result.to_json())

    app.router.add_get("/health", handle_health)
    app.router.add_get("/capabilities", handle_get_capabilities)
    app.router.add_post("/pack", handle_pack)
    app.router.add_route("OPTIONS", "/pack", handle_pack_options)
