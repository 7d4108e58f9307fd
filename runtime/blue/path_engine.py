# -*- coding: utf-8 -*-
"""
Path / naming safety helpers.

Shared by the resolver (reference names) and the upload layer (model names).
"""

from __future__ import annotations

import posixpath
import re
import time


def normalize_reference_name(name: str) -> str:
    """
    Reference names may be written with either separator; the library is
    always addressed with forward slashes.
    """
    return (name or "").strip().replace("\\", "/")


def canonical_path(prefix: str, name: str) -> str:
    """
    prefix + name, slash-normalized and trimmed ("parts/" + "s\\x.dat" -> "parts/s/x.dat").
    """
    joined = posixpath.normpath(posixpath.join(prefix or "", (name or "").replace("\\", "/")))
    return joined.strip().replace("\\", "/")


def safe_filename(name: str, *, default: str = "model.ldr") -> str:
    base = (name or "").strip()
    base = base.replace("\\", "/").split("/")[-1]
    base = re.sub(r"[^a-zA-Z0-9_. ()-]", "_", base).strip()
    if base in ("", ".", ".."):
        return default
    return base


def is_safe_member_name(member_name: str) -> bool:
    """Zip member names must stay inside the extraction root."""
    raw = (member_name or "").replace("\\", "/")
    if not raw or raw.startswith("/") or re.match(r"^[A-Za-z]:", raw):
        return False
    return ".." not in [p for p in raw.split("/")]


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
