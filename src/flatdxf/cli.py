from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Sequence

from .convert import to_dxf
from .document import MODEL_BLOCK, Document
from .flatten import flatten
from .parser import read

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _package_version() -> str:
    try:
        return version("flatdxf")
    except PackageNotFoundError:
        return "0.0.0"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatdxf",
        description="Inspect DXF drawings and flatten them into 2D primitives.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_package_version()}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=_LOG_LEVELS,
        help="Logging level for diagnostics written to stderr (default: WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show basic DXF information.")
    inspect_parser.add_argument("path", help="Path to DXF file.")
    inspect_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show read/ignored/unsupported entity tallies.",
    )
    inspect_parser.add_argument(
        "--keep-paper-space",
        action="store_true",
        help="Read paper space entities instead of discarding them.",
    )

    flatten_parser = subparsers.add_parser(
        "flatten",
        help="Flatten a block into 2D primitives and print a summary.",
    )
    flatten_parser.add_argument("path", help="Path to DXF file.")
    flatten_parser.add_argument(
        "--block",
        default=MODEL_BLOCK,
        help=f"Block to flatten (default: {MODEL_BLOCK}).",
    )
    flatten_parser.add_argument(
        "--keep-paper-space",
        action="store_true",
        help="Read paper space entities instead of discarding them.",
    )

    convert_parser = subparsers.add_parser(
        "convert",
        help="Write flattened geometry to a new DXF file using ezdxf.",
    )
    convert_parser.add_argument("input_path", help="Path to source DXF file.")
    convert_parser.add_argument("output_path", help="Path to output DXF file.")
    convert_parser.add_argument(
        "--dxf-version",
        default="R2010",
        help="Output DXF version (default: R2010).",
    )
    convert_parser.add_argument(
        "--block",
        default=MODEL_BLOCK,
        help=f"Block to flatten (default: {MODEL_BLOCK}).",
    )
    convert_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any primitive cannot be written.",
    )
    return parser


def _load(path: str, *, keep_paper_space: bool = False) -> Document | None:
    file_path = Path(path)
    if not file_path.exists():
        print(f"error: file not found: {file_path}", file=sys.stderr)
        return None
    try:
        return read(file_path, ignore_paper_space=not keep_paper_space)
    except Exception as exc:
        print(f"error: failed to read DXF: {exc}", file=sys.stderr)
        return None


def _run_inspect(path: str, *, verbose: bool = False, keep_paper_space: bool = False) -> int:
    doc = _load(path, keep_paper_space=keep_paper_space)
    if doc is None:
        return 2

    print(f"file: {path}")
    print(f"units: {doc.distance_unit.name.lower()}")
    print(f"limits: {_format_point(doc.limits_min)} - {_format_point(doc.limits_max)}")
    print(f"ltscale: {doc.line_type_scale:g}")
    layers = [doc.get_layer(name) for name in doc.layer_names()]
    print(f"layers: {len(layers)}")
    print(f"frozen_layers: {sum(1 for layer in layers if layer.is_frozen)}")
    print(f"linetypes: {len(doc.line_type_names())}")
    print(f"blocks: {len(doc.block_names())}")

    counts = Counter(str(entity.entity_type) for entity in doc.modelspace)
    print(f"modelspace_entities: {sum(counts.values())}")
    for dxftype, count in sorted(counts.items()):
        print(f"  {dxftype}: {count}")
    if keep_paper_space:
        print(f"paperspace_entities: {len(doc.paperspace)}")

    if verbose and doc.status is not None:
        print("status:")
        for key, by_type in doc.status.summary().items():
            total = sum(by_type.values())
            print(f"  {key}: {total}")
            for dxftype, count in by_type.items():
                print(f"    {dxftype}: {count}")
    return 0


def _run_flatten(path: str, *, block: str = MODEL_BLOCK, keep_paper_space: bool = False) -> int:
    doc = _load(path, keep_paper_space=keep_paper_space)
    if doc is None:
        return 2

    try:
        result = flatten(doc, block)
    except Exception as exc:
        print(f"error: failed to flatten {block}: {exc}", file=sys.stderr)
        return 2

    print(f"block: {block}")
    print(f"primitives: {len(result)}")
    for kind, count in result.counts_by_kind().items():
        print(f"  {kind}: {count}")
    print(f"succeeded_entities: {result.succeeded}")
    print(f"failed_entities: {result.failed}")
    print(f"skipped_entities: {result.skipped}")
    for dxftype, count in sorted(result.failed_by_type.items()):
        print(f"failed[{dxftype}]: {count}")
    return 0


def _run_convert(
    input_path: str,
    output_path: str,
    *,
    dxf_version: str = "R2010",
    block: str = MODEL_BLOCK,
    strict: bool = False,
) -> int:
    dxf_path = Path(input_path)
    if not dxf_path.exists():
        print(f"error: file not found: {dxf_path}", file=sys.stderr)
        return 2

    try:
        result = to_dxf(
            str(dxf_path),
            output_path,
            dxf_version=dxf_version,
            block=block,
            strict=strict,
        )
    except Exception as exc:
        print(f"error: failed to convert DXF: {exc}", file=sys.stderr)
        return 2

    print(f"input: {result.source_path}")
    print(f"output: {result.output_path}")
    print(f"total_primitives: {result.total_primitives}")
    print(f"written_primitives: {result.written_primitives}")
    print(f"skipped_primitives: {result.skipped_primitives}")
    for kind, count in result.skipped_by_kind.items():
        print(f"skipped[{kind}]: {count}")
    return 0


def _format_point(point: tuple[float, float]) -> str:
    return f"({point[0]:g}, {point[1]:g})"


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "inspect":
        return _run_inspect(
            args.path,
            verbose=bool(args.verbose),
            keep_paper_space=bool(args.keep_paper_space),
        )
    if args.command == "flatten":
        return _run_flatten(
            args.path,
            block=args.block,
            keep_paper_space=bool(args.keep_paper_space),
        )
    if args.command == "convert":
        return _run_convert(
            args.input_path,
            args.output_path,
            dxf_version=args.dxf_version,
            block=args.block,
            strict=bool(args.strict),
        )

    parser.print_help()
    return 0
