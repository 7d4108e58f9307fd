# -*- coding: utf-8 -*-
"""
LDraw packer config primitives (pure constants + pure helpers).

Hard rules:
- This module must NOT import server.py (no circular imports).
- Keep it stdlib-only.
"""

from __future__ import annotations

from typing import Tuple


SERVICE_NAME = "ldraw-packer-service"

MATERIALS_FILE_NAME = "LDConfig.ldr"
DEFAULT_LIBRARY_URL = "https://library.ldraw.org/library/updates/complete.zip"

# Candidate prefixes under the library root, in search order.
SEARCH_PREFIXES: Tuple[str, ...] = ("", "parts/", "p/", "models/")

# Line markers.
SELF_DECLARATION_MARKER = "0 FILE "
PLACEMENT_MARKER = "1 "
# "1 <colour> x y z a b c d e f g h i <file>"
PLACEMENT_MIN_TOKENS = 15

PACKED_SUFFIX = "_Packed.mpd"
DEFAULT_MODEL_NAME = "model.ldr"


def packed_file_name(file_name: str) -> str:
    return f"{file_name}{PACKED_SUFFIX}"
