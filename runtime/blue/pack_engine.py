# -*- coding: utf-8 -*-
"""
pack_engine.py

Reference resolver + packer: turns one LDraw model and everything it references
into a single self-contained MPD document.

Design:
- One PackContext per pack operation owns all mutable state (resolution map,
  not-found list, discovered documents). Nothing is module-global, so concurrent
  requests never see each other's state.
- The walk is depth-first and recursive. A document is appended only after its
  own line scan finishes, so children land before their parent and the root
  lands last; assembly reads the documents back in reverse (root first).
- A missing reference never aborts the walk. Missing names are collected and
  raised together once the whole tree has been visited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from library_store import LibraryStore, ResolvedReference
from packer_config import (
    PLACEMENT_MARKER,
    PLACEMENT_MIN_TOKENS,
    SELF_DECLARATION_MARKER,
    packed_file_name,
)
from path_engine import canonical_path, normalize_reference_name


# Debug trace of every file added to a pack (set by server.py from LDRAW_PACKER_DEBUG).
DEBUG_TRACE = False


# =============================================================================
# Errors
# =============================================================================

class PackError(Exception):
    kind = "pack_error"

    def to_payload(self) -> Dict[str, Any]:
        return {"ok": False, "error": self.kind, "details": str(self)}


class LibraryUnavailable(PackError):
    kind = "library_unavailable"


class ReferenceNotFound(PackError):
    kind = "reference_not_found"

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__("File object(s) not found: " + ", ".join(self.missing))

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["missing"] = list(self.missing)
        return payload


class InputUnreadable(PackError):
    kind = "input_unreadable"


# =============================================================================
# Line classification
# =============================================================================

LINE_SELF_DECLARATION = "self_declaration"
LINE_PLACEMENT = "placement"
LINE_OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    kind: str
    # Line with leading spaces/tabs removed; this is what gets emitted.
    text: str
    # Declared sub-name or referenced file name ("" for LINE_OTHER).
    name: str = ""


def strip_indent(line: str) -> str:
    return line.lstrip(" \t")


def classify_line(raw_line: str) -> ClassifiedLine:
    """
    0 FILE <name>                      -> self-declaration
    1 <colour> <x y z> <3x3 matrix> <file> -> placement (needs all 15 tokens)
    anything else, including short placement lines -> other
    """
    line = strip_indent(raw_line)

    if line.startswith(SELF_DECLARATION_MARKER):
        name = normalize_reference_name(line[len(SELF_DECLARATION_MARKER):])
        return ClassifiedLine(LINE_SELF_DECLARATION, line, name)

    if line.startswith(PLACEMENT_MARKER):
        tokens = line.split()
        if len(tokens) >= PLACEMENT_MIN_TOKENS:
            name = normalize_reference_name(" ".join(tokens[PLACEMENT_MIN_TOKENS - 1:]))
            return ClassifiedLine(LINE_PLACEMENT, line, name)

    return ClassifiedLine(LINE_OTHER, line)


def normalize_line_endings(content: str) -> str:
    if "\r" not in content:
        return content
    return content.replace("\r\n", "\n").replace("\r", "\n")


# =============================================================================
# Walk
# =============================================================================

@dataclass
class PackContext:
    library: LibraryStore
    resolution_map: Dict[str, str] = field(default_factory=dict)
    not_found: List[str] = field(default_factory=list)
    document_paths: List[str] = field(default_factory=list)
    document_contents: List[str] = field(default_factory=list)
    # Names whose walk has started but not finished (guards reference cycles).
    in_progress: Set[str] = field(default_factory=set)

    def add_document(self, path: str, content: str) -> None:
        self.document_paths.append(path)
        self.document_contents.append(content)

    def unresolved(self) -> List[str]:
        """Not-found names that no later spelling/declaration satisfied (exact key match)."""
        out: List[str] = []
        for name in self.not_found:
            if name not in self.resolution_map and name not in out:
                out.append(name)
        return out


def _resolve(name: str, is_root: bool, context: PackContext) -> Optional[ResolvedReference]:
    if is_root:
        return context.library.read_root(name)
    return context.library.resolve_reference(name)


def walk_reference(name: str, is_root: bool, context: PackContext) -> Optional[str]:
    """
    Resolve `name`, rewrite its content, recurse into its placements, and append
    it to the context's documents. Returns the canonical path, or None if the file
    could not be found anywhere.
    """
    if DEBUG_TRACE:
        print(f"[PACK] Adding: {name}", flush=True)

    resolved = _resolve(name, is_root, context)
    if resolved is None:
        context.not_found.append(name)
        return None

    object_path = canonical_path(resolved.prefix, resolved.name)
    content = normalize_line_endings(resolved.content)
    context.in_progress.add(name)

    out: List[str] = [] if is_root else [f"{SELF_DECLARATION_MARKER}{object_path}\n"]

    for i, raw_line in enumerate(content.split("\n")):
        line = classify_line(raw_line)

        if line.kind == LINE_SELF_DECLARATION:
            if i == 0 and is_root:
                continue
            if line.name and line.name not in context.resolution_map:
                # Declared inline: already embedded, never fetched.
                context.resolution_map[line.name] = line.name

        elif line.kind == LINE_PLACEMENT:
            if (
                line.name
                and line.name not in context.resolution_map
                and line.name not in context.in_progress
            ):
                sub_path = walk_reference(line.name, False, context)
                if sub_path:
                    context.resolution_map[line.name] = sub_path

        out.append(line.text + "\n")

    context.in_progress.discard(name)
    context.add_document(object_path, "".join(out))
    return object_path


# =============================================================================
# Pack
# =============================================================================

@dataclass(frozen=True)
class PackResult:
    file_name: str
    packed_file_name: str
    packed_content: str

    def to_json(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "success": True,
            "fileName": self.file_name,
            "packedFileName": self.packed_file_name,
            "packedContent": self.packed_content,
        }


def assemble(materials: str, context: PackContext) -> str:
    parts = [materials, "\n"]
    parts.extend(reversed(context.document_contents))
    parts.append("\n")
    return "".join(parts)


def pack_file(root: Union[str, Path], library: LibraryStore) -> str:
    """
    Pack the model at `root` (a readable path, or a library reference name).

    Raises LibraryUnavailable when the materials file cannot be read, and
    ReferenceNotFound listing every name that stayed unresolved.
    """
    materials = library.read_materials()
    if materials is None:
        raise LibraryUnavailable(f"Materials file not found: {library.materials_path}")

    print(f"[PACK] Packing: {root}", flush=True)

    context = PackContext(library=library)
    walk_reference(str(root), True, context)

    missing = context.unresolved()
    if missing:
        for name in missing:
            print(f"[PACK] Error: File object not found: {name}", flush=True)
        raise ReferenceNotFound(missing)

    return assemble(materials, context)


def pack_model(file_name: str, root: Union[str, Path], library: LibraryStore) -> PackResult:
    packed = pack_file(root, library)
    return PackResult(
        file_name=file_name,
        packed_file_name=packed_file_name(file_name),
        packed_content=packed,
    )
