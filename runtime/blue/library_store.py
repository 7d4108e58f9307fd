# -*- coding: utf-8 -*-
"""
library_store.py

Read-only access to the LDraw library on disk, plus its one-time provisioning.

Scope:
- LibraryStore: root path + materials file + readiness query
- resolve_reference(): the two-pass, four-location search for a referenced file
- read_root(): direct read of a caller-supplied root path, library search as fallback
- ensure_library(): download + unzip the complete library on first run

Hard rules:
- Nothing here writes to the library once it is provisioned.
- Resolution never raises for a missing file; it returns None and lets the walker decide.
- Resolution never reads outside the root: absolute or ".." names are not found.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import requests

from packer_config import DEFAULT_LIBRARY_URL, MATERIALS_FILE_NAME, SEARCH_PREFIXES
from path_engine import is_safe_member_name


@dataclass(frozen=True)
class ResolvedReference:
    content: str
    # One of SEARCH_PREFIXES ("" for a direct root read).
    prefix: str
    # Name as actually read; lowercased when the second pass matched.
    name: str


@dataclass(frozen=True)
class LibraryStatus:
    ready: bool
    path: str
    provisioned: bool = False
    error: str = ""

    def to_json(self) -> dict:
        return {
            "ready": self.ready,
            "path": self.path,
            "provisioned": self.provisioned,
            "error": self.error,
        }


def read_text_file(path: Path) -> Optional[str]:
    """
    Full read attempt. None means "not readable here" (missing, directory, permissions).
    Line endings are left untouched; the walker normalizes them.
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
            return f.read()
    except OSError:
        return None


class LibraryStore:
    def __init__(
        self,
        root: Union[str, Path],
        *,
        materials_file_name: str = MATERIALS_FILE_NAME,
        library_url: str = DEFAULT_LIBRARY_URL,
    ) -> None:
        self.root = Path(root).expanduser()
        self.materials_file_name = materials_file_name
        self.library_url = library_url

    def __repr__(self) -> str:
        return f"LibraryStore(root={str(self.root)!r})"

    @property
    def materials_path(self) -> Path:
        return self.root / self.materials_file_name

    def is_ready(self) -> bool:
        """Is the library provisioned at self.root? No side effects."""
        return self.root.is_dir()

    def read_materials(self) -> Optional[str]:
        return read_text_file(self.materials_path)

    # -----------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------

    def resolve_reference(self, name: str) -> Optional[ResolvedReference]:
        """
        Try root/name, root/parts/name, root/p/name, root/models/name; if all four
        fail, run the same sequence again with the name lowercased.

        Names that are absolute or climb out with ".." never resolve: every
        candidate must stay under the library root.
        """
        if not is_safe_member_name(name):
            return None
        for candidate_name in (name, name.lower()):
            for prefix in SEARCH_PREFIXES:
                content = read_text_file(self.root / prefix / candidate_name)
                if content is not None:
                    return ResolvedReference(content=content, prefix=prefix, name=candidate_name)
            if candidate_name == name.lower():
                # Already lowercase: the second pass would repeat the first.
                break
        return None

    def read_root(self, path_or_name: str) -> Optional[ResolvedReference]:
        """
        The top-level file is usually a caller-provided path (e.g. a staged upload);
        only when that cannot be read is it treated as a library reference.
        """
        content = read_text_file(Path(path_or_name))
        if content is not None:
            return ResolvedReference(content=content, prefix="", name=path_or_name)
        print("[PACK] Could not read root file directly, trying LDraw structure...", flush=True)
        return self.resolve_reference(path_or_name)

    # -----------------------------------------------------------------
    # Provisioning
    # -----------------------------------------------------------------

    def ensure_library(self, *, timeout_s: float = 600.0) -> LibraryStatus:
        """
        Download and unpack the complete library unless it is already present.
        Must never throw: the caller decides whether a non-ready library is fatal.
        """
        if self.is_ready():
            print(f"[LIBRARY] LDraw library already exists at: {self.root}", flush=True)
            return LibraryStatus(ready=True, path=str(self.root))

        print(f"[LIBRARY] Downloading LDraw library from {self.library_url} ...", flush=True)
        parent = self.root.parent
        archive: Optional[Path] = None
        staging: Optional[Path] = None
        try:
            parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix="ldraw_", suffix=".zip", dir=str(parent))
            os.close(fd)
            archive = Path(tmp_name)
            # Unpack beside the root; the root only appears once extraction is complete.
            staging = Path(tempfile.mkdtemp(prefix=".ldraw_staging_", dir=str(parent)))

            self._download(archive, timeout_s=timeout_s)
            skipped = self._extract(archive, staging)
            if skipped:
                print(f"[LIBRARY] Skipped {skipped} unsafe archive member(s)", flush=True)

            # The official archive unpacks to "ldraw/"; a flat archive is used as-is.
            unpacked = staging / "ldraw"
            if not unpacked.is_dir():
                unpacked = staging
            if not (unpacked / self.materials_file_name).is_file():
                raise FileNotFoundError(f"archive did not produce {self.root / self.materials_file_name}")

            shutil.move(str(unpacked), str(self.root))
        except Exception as e:
            print(f"[LIBRARY] Error initializing LDraw library: {e!r}", flush=True)
            return LibraryStatus(ready=False, path=str(self.root), error=repr(e))
        finally:
            if archive is not None:
                try:
                    if archive.exists():
                        archive.unlink()
                except OSError as e:
                    print(f"[LIBRARY] Could not remove archive {archive}: {e!r}", flush=True)
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        print(f"[LIBRARY] LDraw library downloaded and extracted to: {self.root}", flush=True)
        return LibraryStatus(ready=True, path=str(self.root), provisioned=True)

    def _download(self, dest: Path, *, timeout_s: float) -> None:
        with requests.get(self.library_url, stream=True, timeout=timeout_s) as resp:
            resp.raise_for_status()
            with dest.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=1024 * 1024):
                    if chunk:
                        f.write(chunk)

    @staticmethod
    def _extract(archive: Path, dest_dir: Path) -> int:
        skipped = 0
        with zipfile.ZipFile(archive, "r") as zf:
            for info in zf.infolist():
                if not is_safe_member_name(info.filename):
                    skipped += 1
                    continue
                zf.extract(info, path=str(dest_dir))
        return skipped
