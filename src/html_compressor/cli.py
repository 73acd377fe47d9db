"""Command line interface for html-compressor.

Usage:
    html-compressor page.html                      # compress to stdout
    html-compressor page.html -o page.min.html     # write to a file
    cat page.html | html-compressor --remove-quotes --remove-intertag-spaces
    html-compressor page.html --preserve '<\\?php.*?\\?>' --stats
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from html_compressor.compressor import CompressorOptions, compress_with_stats


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="html-compressor",
        description="Remove comments and redundant whitespace from HTML",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="HTML file to compress (default: read from stdin)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Path to write the compressed HTML (default: stdout)",
    )
    parser.add_argument(
        "--keep-comments",
        action="store_true",
        help="Do not remove HTML comments",
    )
    parser.add_argument(
        "--keep-multi-spaces",
        action="store_true",
        help="Do not collapse runs of whitespace",
    )
    parser.add_argument(
        "--remove-intertag-spaces",
        action="store_true",
        help="Remove whitespace between tags",
    )
    parser.add_argument(
        "--remove-quotes",
        action="store_true",
        help="Remove unnecessary quotes from tag attributes",
    )
    parser.add_argument(
        "--disable",
        action="store_true",
        help="Pass input through unchanged",
    )
    parser.add_argument(
        "--preserve",
        action="append",
        default=[],
        metavar="REGEX",
        help="Regex for blocks to leave untouched (repeatable, earlier wins)",
    )
    parser.add_argument(
        "--encoding",
        default="utf-8",
        help="Encoding of the input and output, files or stdin/stdout (default: utf-8)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print size statistics to stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = CompressorOptions(
            remove_comments=not args.keep_comments,
            remove_multi_spaces=not args.keep_multi_spaces,
            remove_intertag_spaces=args.remove_intertag_spaces,
            remove_quotes=args.remove_quotes,
            enabled=not args.disable,
            preserve_patterns=args.preserve,
        )
    except ValueError as e:
        parser.error(str(e))

    try:
        if args.input == "-":
            html = sys.stdin.buffer.read().decode(args.encoding)
        else:
            html = Path(args.input).read_text(encoding=args.encoding)
    except LookupError:
        parser.error(f"unknown encoding: {args.encoding}")
    except FileNotFoundError:
        parser.error(f"file not found: {args.input}")
    except (OSError, UnicodeDecodeError) as e:
        parser.error(f"cannot read {args.input}: {e}")

    result = compress_with_stats(html, options)

    try:
        data = result.text.encode(args.encoding)
        if args.output is not None:
            args.output.write_bytes(data)
        else:
            sys.stdout.flush()
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
    except (OSError, UnicodeEncodeError) as e:
        parser.error(f"cannot write output: {e}")

    if args.stats:
        print(
            f"{result.original_length:,d} -> {result.compressed_length:,d} chars "
            f"({result.savings_pct:.1f}% saved, {len(result.preserved_blocks)} blocks preserved)",
            file=sys.stderr,
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
