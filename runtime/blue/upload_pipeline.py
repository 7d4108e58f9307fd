# -*- coding: utf-8 -*-
"""
upload_pipeline.py

Temp-file lifecycle around a pack request.

Scope:
- Model name sanitizing for staged files
- Per-request staging directory under the temp dir
- Guaranteed cleanup after the pack, success or failure

Hard rules:
- Every request stages into its own directory; two uploads named "model.ldr"
  must never overwrite each other.
- The packer only ever sees a readable path; it never touches the temp dir itself.
"""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from typing import Optional, Union

from library_store import LibraryStore
from pack_engine import InputUnreadable, PackResult, pack_model
from packer_config import DEFAULT_MODEL_NAME
from path_engine import safe_filename


def sanitize_model_name(name: Optional[str]) -> str:
    return safe_filename(name or "", default=DEFAULT_MODEL_NAME)


def decode_model_bytes(data: bytes) -> str:
    """Uploads are treated as UTF-8; undecodable bytes are replaced rather than rejected."""
    if not data:
        raise InputUnreadable("No model data provided")
    return data.decode("utf-8", errors="replace")


def stage_model(temp_dir: Union[str, Path], file_name: str, content: str) -> Path:
    """
    Write the model content to <temp_dir>/<request id>/<file name> and return that path.
    """
    base = Path(temp_dir)
    request_dir = base / uuid.uuid4().hex
    try:
        request_dir.mkdir(parents=True, exist_ok=False)
        staged = request_dir / sanitize_model_name(file_name)
        # newline="" keeps the upload's own line endings; the packer normalizes them.
        with staged.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        shutil.rmtree(request_dir, ignore_errors=True)
        raise InputUnreadable(f"Failed to stage model: {e!r}") from e
    return staged


def discard_staged(staged: Path) -> None:
    """Best-effort: remove the staged file and its request directory."""
    try:
        if staged.exists():
            staged.unlink()
    except OSError as e:
        print(f"[HTTP] Could not remove staged file {staged}: {e!r}", flush=True)
    shutil.rmtree(staged.parent, ignore_errors=True)


def pack_uploaded_model(
    library: LibraryStore,
    temp_dir: Union[str, Path],
    file_name: str,
    content: str,
) -> PackResult:
    staged = stage_model(temp_dir, file_name, content)
    try:
        return pack_model(file_name, staged, library)
    finally:
        discard_staged(staged)
