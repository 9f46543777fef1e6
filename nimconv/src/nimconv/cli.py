"""Command line interface for the NIM/NIP converter."""

from __future__ import annotations

import argparse
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List

from .converter import ConvertOptions, convert_file_to_nim
from .errors import FileOpenError, NimError, ParameterError
from .palette import DEFAULT_TRANSPARENT_INDEX, Palette, load_palette, parse_index

USAGE = """\
Syntax: nim <command> <command-params>
Commands:
    palette <flags> <filename.pal>     Generate a .nip file
    palette <flags> -d <filename.nip>  Generate a default RRRGGGBB palette
    image <flags> <filename.ext>       Generate a .nim file from source image

palette flags:
    -9                                 Use 9-bit palettes (RRRGGGBBB)
    --transparent <colour>             Set transparency colour (index only)
image flags:
    --pal <filename.nip/pal>           Define the palette to use in conversion
    --transparent <colour>             Override the palette's transparency colour
    -4                                 Output 4-bit graphics
"""

PALETTE_SYNTAX = """\
Invalid parameters.
Syntax:
    nim palette <filename.pal>  - Generate .nip file.
    nim palette -d <filename>   - Generate default RRRGGGBB palette."""

IMAGE_SYNTAX = """\
Invalid parameters.
Syntax:
    nim image <options> <filename.ext>  - Generate .nim file.

Options:
    --pal <filename.nip/.pal>   - Define palette to use in conversion."""


class CommandArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports problems as ``ParameterError``."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise ParameterError(f"{message}\n{self.format_usage().rstrip()}")


@dataclass(frozen=True)
class Command:
    name: str
    build_parser: Callable[[], argparse.ArgumentParser]
    handler: Callable[[argparse.Namespace], int]


def build_palette_parser() -> argparse.ArgumentParser:
    parser = CommandArgumentParser(
        prog="nim palette",
        description="Convert a .pal/.nip palette, or the default palette, into a .nip file.",
    )
    parser.add_argument("params", nargs="*", help="Source palette, or output name with -d")
    parser.add_argument(
        "-d",
        dest="default",
        action="store_true",
        help="Generate the default RRRGGGBB palette",
    )
    parser.add_argument(
        "-9",
        dest="extended",
        action="store_true",
        help="Use 9-bit palettes (RRRGGGBBB)",
    )
    parser.add_argument(
        "--transparent",
        metavar="COLOUR",
        help="Transparency index as decimal or $hex",
    )
    return parser


def build_image_parser() -> argparse.ArgumentParser:
    parser = CommandArgumentParser(
        prog="nim image",
        description="Convert an image into a .nim file.",
    )
    parser.add_argument("params", nargs="*", help="Source image")
    parser.add_argument(
        "--pal",
        metavar="FILE",
        help="Palette (.nip or .pal) used in conversion; default RRRGGGBB otherwise",
    )
    parser.add_argument(
        "-4",
        dest="pack_4bit",
        action="store_true",
        help="Output 4-bit graphics (two pixels per byte)",
    )
    parser.add_argument(
        "--transparent",
        metavar="COLOUR",
        help="Override the palette's transparency index (decimal or $hex)",
    )
    return parser


def _output_path(source: str, suffix: str) -> Path:
    try:
        return Path(source).with_suffix(suffix)
    except ValueError as exc:
        raise ParameterError(f"Invalid file name: {source!r}") from exc


def _write_output(path: Path, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError as exc:
        raise FileOpenError(f"Unable to create file {path}") from exc
    print(f"wrote {path}")


def palette_handler(args: argparse.Namespace) -> int:
    if len(args.params) != 1:
        raise ParameterError(PALETTE_SYNTAX)

    source = args.params[0]
    out_path = _output_path(source, ".nip")

    if args.default:
        palette = Palette.default()
    else:
        palette = load_palette(source)
    if args.transparent is not None:
        palette.transparent_index = parse_index(args.transparent)
    else:
        palette.transparent_index = DEFAULT_TRANSPARENT_INDEX

    _write_output(out_path, palette.to_nip(extended=args.extended))
    return 0


def image_handler(args: argparse.Namespace) -> int:
    if len(args.params) != 1:
        raise ParameterError(IMAGE_SYNTAX)

    source = args.params[0]
    out_path = _output_path(source, ".nim")

    palette = load_palette(args.pal) if args.pal else Palette.default()
    if args.transparent is not None:
        palette.transparent_index = parse_index(args.transparent)

    options = ConvertOptions()
    options.pack_4bit = args.pack_4bit

    data = convert_file_to_nim(source, palette, options)
    _write_output(out_path, data)
    return 0


COMMANDS: Dict[str, Command] = {
    "palette": Command("palette", build_palette_parser, palette_handler),
    "image": Command("image", build_image_parser, image_handler),
}


def main(argv: List[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    command = COMMANDS.get(argv[0]) if argv else None
    if command is None:
        print("ERROR: Unknown command.", file=sys.stderr)
        print(USAGE)
        return 0

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            args = command.build_parser().parse_args(argv[1:])
            result = command.handler(args)
        for warning in caught:
            print(f"Warning: {warning.message}")
        return result
    except NimError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
