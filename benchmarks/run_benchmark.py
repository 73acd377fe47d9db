#!/usr/bin/env python3
"""
Benchmark suite for html-compressor.

Compresses every page in the corpus with each option profile and reports
size savings, timing and how many blocks of each kind were preserved.

Usage:
    python benchmarks/run_benchmark.py                        # all profiles
    python benchmarks/run_benchmark.py --profile aggressive   # one profile
    python benchmarks/run_benchmark.py --iterations 50 -o results.json
"""

from __future__ import annotations

import argparse
import datetime
import json
import platform
import statistics
import sys
import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path

# Ensure the src package is importable when running from repo root.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from html_compressor import CompressorOptions, compress_with_stats  # noqa: E402

PROFILES: dict[str, CompressorOptions] = {
    "default": CompressorOptions(),
    "intertag": CompressorOptions(remove_intertag_spaces=True),
    "aggressive": CompressorOptions(remove_intertag_spaces=True, remove_quotes=True),
}


@dataclass(slots=True)
class Measurement:
    """One page compressed with one profile."""

    page: str
    profile: str
    original_chars: int
    compressed_chars: int
    savings_pct: float
    median_ms: float
    best_ms: float
    # kind -> number of blocks, e.g. {"pre": 1, "event": 3}
    preserved: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class BenchmarkReport:
    timestamp: str
    python_version: str
    iterations: int
    measurements: list[Measurement] = field(default_factory=list)

    def for_profile(self, profile: str) -> list[Measurement]:
        return [m for m in self.measurements if m.profile == profile]


def measure(page: str, html: str, profile: str, *, iterations: int) -> Measurement:
    """Compress *html* with one profile *iterations* times."""
    options = PROFILES[profile]
    timings: list[float] = []
    for _ in range(max(iterations, 1)):
        start = time.perf_counter()
        result = compress_with_stats(html, options)
        timings.append((time.perf_counter() - start) * 1000)

    return Measurement(
        page=page,
        profile=profile,
        original_chars=result.original_length,
        compressed_chars=result.compressed_length,
        savings_pct=result.savings_pct,
        median_ms=statistics.median(timings),
        best_ms=min(timings),
        preserved=dict(Counter(block.kind for block in result.preserved_blocks)),
    )


def _format_preserved(preserved: dict[str, int]) -> str:
    return ", ".join(f"{kind}={n}" for kind, n in sorted(preserved.items())) or "-"


_ROW_FMT = "  {:<24s} {:<11s} {:>9,d} {:>9,d} {:>6.1f}% {:>8.2f}ms  {}"


def _print_header() -> None:
    print("  {:<24s} {:<11s} {:>9s} {:>9s} {:>7s} {:>10s}  {}".format(
        "Page", "Profile", "Orig", "Comp", "Saved", "Median", "Preserved"
    ))


def _print_summary(report: BenchmarkReport, profiles: list[str]) -> None:
    print("\n  Totals")
    for profile in profiles:
        rows = report.for_profile(profile)
        orig = sum(m.original_chars for m in rows)
        comp = sum(m.compressed_chars for m in rows)
        saved = (1.0 - comp / orig) * 100.0 if orig else 0.0
        print(_ROW_FMT.format(
            "(all pages)",
            profile,
            orig,
            comp,
            saved,
            sum(m.median_ms for m in rows),
            "",
        ))


def run_benchmark(
    corpus_dir: Path,
    profiles: list[str],
    *,
    iterations: int = 10,
    output_path: Path | None = None,
) -> BenchmarkReport:
    """Benchmark every ``*.html`` page under *corpus_dir*."""
    pages = sorted(corpus_dir.glob("*.html"))
    if not pages:
        print(f"No .html files found in {corpus_dir}")
        sys.exit(1)

    report = BenchmarkReport(
        timestamp=datetime.datetime.now(datetime.timezone.utc).isoformat(),
        python_version=platform.python_version(),
        iterations=iterations,
    )

    print(f"\nhtml-compressor benchmark, Python {report.python_version}, {iterations} iterations")
    _print_header()
    for path in pages:
        html = path.read_text(encoding="utf-8")
        for profile in profiles:
            m = measure(path.name, html, profile, iterations=iterations)
            report.measurements.append(m)
            print(_ROW_FMT.format(
                m.page,
                m.profile,
                m.original_chars,
                m.compressed_chars,
                m.savings_pct,
                m.median_ms,
                _format_preserved(m.preserved),
            ))
    _print_summary(report, profiles)

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
        print(f"\n  Results saved to {output_path}")

    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark suite for html-compressor")
    parser.add_argument(
        "--corpus",
        type=Path,
        default=Path(__file__).resolve().parent / "corpus",
        help="Directory with .html pages (default: benchmarks/corpus/)",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=10,
        help="Runs per (page, profile) for timing (default: 10)",
    )
    parser.add_argument(
        "--profile",
        choices=sorted(PROFILES),
        action="append",
        default=None,
        help="Option profile to run (repeatable, default: all)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Path to save JSON results",
    )
    args = parser.parse_args()

    run_benchmark(
        args.corpus,
        args.profile or list(PROFILES),
        iterations=args.iterations,
        output_path=args.output,
    )


if __name__ == "__main__":
    main()
