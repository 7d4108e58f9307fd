# -*- coding: utf-8 -*-
"""
capabilities.py

Code-backed Capabilities Registry for the LDraw packer service.

Purpose:
- A stable map of "feature -> where implemented", served at GET /capabilities
  and checked by `server.py --smoke`.

Notes:
- This module MUST be pure (no side effects) and safe to import from anywhere.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Capability:
    id: str
    name: str
    purpose: str
    entrypoints: List[str]
    implementation: List[str]
    state_and_artifacts: List[str]
    meta: Dict[str, Any] = field(default_factory=dict)


_REGISTRY: List[Capability] = [
    Capability(
        id="http.health",
        name="Health & library status",
        purpose="Report service liveness and whether the LDraw library is provisioned.",
        entrypoints=["HTTP GET /health"],
        implementation=["http_api.register_routes() -> handle_health()", "LibraryStore.is_ready()"],
        state_and_artifacts=["Reads: library root directory (existence only)"],
    ),
    Capability(
        id="http.pack",
        name="Pack model",
        purpose="Accept an LDraw model (multipart 'model' field or raw body) and return a packed MPD.",
        entrypoints=["HTTP POST /pack", "HTTP OPTIONS /pack"],
        implementation=[
            "http_api.register_routes() -> handle_pack()",
            "upload_pipeline.pack_uploaded_model()",
        ],
        state_and_artifacts=[
            "Writes: <temp dir>/<request id>/<model name> (removed after the pack)",
            "Reads: LDraw library files",
        ],
        meta={"max_upload_mb_env": "LDRAW_PACKER_MAX_UPLOAD_MB"},
    ),
    Capability(
        id="http.capabilities",
        name="Capabilities registry",
        purpose="Expose this registry as JSON.",
        entrypoints=["HTTP GET /capabilities"],
        implementation=["http_api.register_routes() -> handle_get_capabilities()"],
        state_and_artifacts=["None (pure, in-memory)"],
    ),
    Capability(
        id="core.pack",
        name="Reference resolver + packer",
        purpose="Recursively resolve every referenced sub-file and assemble a root-first MPD.",
        entrypoints=["pack_engine.pack_file()", "pack_engine.pack_model()"],
        implementation=[
            "pack_engine.walk_reference()",
            "pack_engine.classify_line()",
            "library_store.LibraryStore.resolve_reference()",
        ],
        state_and_artifacts=["Reads: LDConfig.ldr, parts/, p/, models/ under the library root"],
    ),
    Capability(
        id="library.provision",
        name="Library provisioning",
        purpose="Download and unpack the complete LDraw library on first run.",
        entrypoints=["server.main() at boot"],
        implementation=["library_store.LibraryStore.ensure_library()"],
        state_and_artifacts=["Writes: library root (once)"],
        meta={"url_env": "LDRAW_LIBRARY_URL"},
    ),
    Capability(
        id="cli.pack",
        name="Offline pack",
        purpose="Pack a local model file without the HTTP layer.",
        entrypoints=["python runtime/blue/tools/pack_model.py MODEL"],
        implementation=["tools/pack_model.py -> pack_engine.pack_model()"],
        state_and_artifacts=["Writes: <model>_Packed.mpd next to the model (or --out)"],
    ),
]


def _norm_id(s: Any) -> str:
    return str(s or "").strip()


def validate_registry(*, required_ids: Optional[List[str]] = None) -> List[str]:
    """
    Internal consistency + required capability presence.
    Returns human-readable errors; empty list means OK.
    """
    errs: List[str] = []

    seen: set = set()
    for i, c in enumerate(_REGISTRY):
        cid = _norm_id(c.id)
        if not cid:
            errs.append(f"registry[{i}] missing id")
            continue
        if cid in seen:
            errs.append(f"duplicate capability id: {cid}")
        seen.add(cid)

        if not _norm_id(c.name):
            errs.append(f"{cid}: missing name")
        if not _norm_id(c.purpose):
            errs.append(f"{cid}: missing purpose")
        for label, values in (
            ("entrypoints", c.entrypoints),
            ("implementation", c.implementation),
            ("state_and_artifacts", c.state_and_artifacts),
        ):
            if not isinstance(values, list) or not any(_norm_id(x) for x in values):
                errs.append(f"{cid}: {label} empty")

    for rid in [_norm_id(x) for x in (required_ids or []) if _norm_id(x)]:
        if rid not in seen:
            errs.append(f"missing required capability: {rid}")

    return errs


def smoke_test_registry(*, required_ids: List[str]) -> Tuple[bool, str]:
    errs = validate_registry(required_ids=required_ids)
    if errs:
        return False, "capabilities registry FAILED:\n- " + "\n- ".join(errs[:40])
    return True, "ok"


def get_registry_json() -> List[Dict[str, Any]]:
    return [asdict(c) for c in _REGISTRY]
