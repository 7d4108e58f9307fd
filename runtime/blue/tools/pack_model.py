"""
Offline packer: pack a local LDraw model without starting the HTTP service.

    python runtime/blue/tools/pack_model.py path/to/model.ldr [--ldraw ~/ldraw] [--out packed.mpd]
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

RUNTIME_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if RUNTIME_DIR not in sys.path:
    sys.path.insert(0, RUNTIME_DIR)

import pack_engine  # noqa: E402
from library_store import LibraryStore  # noqa: E402


def _default_ldraw() -> str:
    return (os.environ.get("LDRAW_PATH") or "").strip() or str(Path.home() / "ldraw")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pack_model.py")
    parser.add_argument("model", help="LDraw model to pack (.ldr / .mpd)")
    parser.add_argument("--ldraw", default=_default_ldraw(), help="LDraw library root")
    parser.add_argument("--out", default="", help="output file (default: <model>_Packed.mpd)")
    parser.add_argument("--debug", action="store_true", help="print every file added")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    model = Path(args.model)
    if not model.is_file():
        print(f"[PACK] Model not found: {model}", file=sys.stderr)
        return 2

    pack_engine.DEBUG_TRACE = bool(args.debug)
    library = LibraryStore(args.ldraw)

    try:
        result = pack_engine.pack_model(model.name, model, library)
    except pack_engine.ReferenceNotFound as e:
        print(f"[PACK] {len(e.missing)} reference(s) not found:", file=sys.stderr)
        for name in e.missing:
            print(f"  - {name}", file=sys.stderr)
        return 1
    except pack_engine.PackError as e:
        print(f"[PACK] {e.kind}: {e}", file=sys.stderr)
        return 1

    out = Path(args.out) if args.out else model.with_name(result.packed_file_name)
    with out.open("w", encoding="utf-8", newline="") as f:
        f.write(result.packed_content)
    print(f"[PACK] Wrote {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
