"""
Batch extraction CLI.

Runs product URLs (full pipeline) and saved HTML pages (heuristics only) in
parallel using asyncio.gather, writes products.json and prints a coverage report.

    python main.py https://www.amazon.com/dp/B0... page.html --url https://www.macys.com/...
"""

import argparse
import asyncio
import json
import logging
import re
import time
from pathlib import Path

import httpx

from config import Settings
from extractor import PRODUCT_FIELDS, ExtractionOutcome, extract_from_html, extract_product
from log import setup_logging

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
OUTPUT_FILE = Path(__file__).parent / "products.json"

_CANONICAL_RE = re.compile(
    r"<link[^>]+rel=[\"']canonical[\"'][^>]*href=[\"']([^\"']+)[\"']|"
    r"<meta[^>]+property=[\"']og:url[\"'][^>]*content=[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)


def page_url_from_html(html: str) -> str:
    """Canonical or og:url of a saved page, so site rules still apply offline."""
    match = _CANONICAL_RE.search(html)
    if not match:
        return ""
    return match.group(1) or match.group(2) or ""


async def process_target(
    target: str, client: httpx.AsyncClient, settings: Settings, page_url: str | None = None
) -> ExtractionOutcome:
    """Extract one URL or one saved HTML file."""
    logger.info(f"Processing {target}...")
    if target.startswith(("http://", "https://")):
        outcome = await extract_product(target, client=client, settings=settings)
    else:
        html = Path(target).read_text(encoding="utf-8")
        outcome = extract_from_html(html, page_url or page_url_from_html(html))
        outcome.trace.url = Path(target).name

    p = outcome.product
    logger.info(
        f"  Result: {p.product_name} | {p.price} (was {p.original_price}) | "
        f"Category: {p.category} | Image: {'yes' if p.image_url else 'no'} | "
        f"Attributes: {len(p.attributes)}"
    )
    return outcome


async def process_all(
    targets: list[str], settings: Settings, page_url: str | None = None
) -> tuple[list[ExtractionOutcome], int]:
    """Process every target concurrently. Returns (outcomes, failure_count)."""
    logger.info(f"Found {len(targets)} targets to process")
    async with httpx.AsyncClient() as client:
        results = await asyncio.gather(
            *[process_target(t, client, settings, page_url) for t in targets],
            return_exceptions=True,
        )

    outcomes: list[ExtractionOutcome] = []
    failures = 0
    for target, result in zip(targets, results):
        if isinstance(result, Exception):
            logger.error(f"Failed to process {target}: {result}", exc_info=result)
            failures += 1
        else:
            outcomes.append(result)
    return outcomes, failures


def print_report(outcomes: list[ExtractionOutcome], failures: int, wall_clock: float) -> None:
    """Print a coverage report."""
    traces = [o.trace for o in outcomes]
    total = len(traces) + failures
    n = len(traces)

    # ── Reliability ──────────────────────────────────────────────────
    print(f"\n{'='*70}")
    print("EXTRACTION REPORT")
    print(f"{'='*70}")

    print(f"\n── Reliability ──")
    print(f"  Targets attempted: {total}")
    print(f"  Succeeded:         {n}")
    print(f"  Failed:            {failures}")
    print(f"  Success rate:      {n/total*100:.0f}%" if total else "  N/A")

    if not traces:
        print("\n  No successful extractions to report on.")
        return

    # ── Fetch strategies ────────────────────────────────────────────
    print(f"\n── Fetch strategy ──")
    strategies: dict[str, int] = {}
    for t in traces:
        strategies[t.fetch_strategy] = strategies.get(t.fetch_strategy, 0) + 1
    for strategy, count in sorted(strategies.items(), key=lambda x: -x[1]):
        print(f"  {strategy:<20} {count}/{n}")

    # ── Heuristics vs semantic ──────────────────────────────────────
    print(f"\n── Heuristics vs semantic fallback ──")
    possible = n * len(PRODUCT_FIELDS)
    from_heuristics = sum(len(t.fields_from_heuristics) for t in traces)
    from_semantic = sum(len(t.fields_from_semantic) for t in traces)
    missing = sum(len(t.fields_missing_after_all) for t in traces)
    print(f"  Fields filled by heuristics:  {from_heuristics}/{possible} ({from_heuristics/possible*100:.0f}%)")
    print(f"  Fields filled by semantic:    {from_semantic}/{possible} ({from_semantic/possible*100:.0f}%)")
    print(f"  Fields still empty:           {missing}/{possible} ({missing/possible*100:.0f}%)")

    print(f"\n  Per-field source breakdown:")
    print(f"  {'Field':<20} {'Heur':>8} {'Sem':>8} {'Empty':>8}")
    print(f"  {'-'*46}")
    for field in PRODUCT_FIELDS:
        heur = sum(1 for t in traces if field in t.fields_from_heuristics)
        sem = sum(1 for t in traces if field in t.fields_from_semantic)
        empty = sum(1 for t in traces if field in t.fields_missing_after_all)
        print(f"  {field:<20} {heur:>7}  {sem:>7}  {empty:>7}")

    # ── Rules that fired ────────────────────────────────────────────
    print(f"\n── Rules ──")
    print(f"  {'Target':<40} {'Site':<8} {'Price source':<22} {'Image rule':<18} {'Category'}")
    print(f"  {'-'*100}")
    for t in traces:
        print(f"  {t.url[:40]:<40} {t.site:<8} {t.price_source or '-':<22} {t.image_rule or '-':<18} {t.category}")

    # ── Timing ──────────────────────────────────────────────────────
    print(f"\n── Timing ──")
    print(f"  Wall clock (total):  {wall_clock:.2f}s")
    print(f"  {'Target':<40} {'Fetch':>8} {'Heur':>8} {'Sem':>8} {'Total':>8}")
    print(f"  {'-'*76}")
    for t in traces:
        print(
            f"  {t.url[:40]:<40} {t.fetch_time:>7.3f}s {t.heuristic_time:>7.3f}s "
            f"{t.semantic_time:>7.3f}s {t.total_time:>7.3f}s"
        )

    print(f"\n{'='*70}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract wishlist product records.")
    parser.add_argument("targets", nargs="*", help="product URLs or saved .html pages (default: data/*.html)")
    parser.add_argument("--url", help="page URL for saved .html files (default: their canonical link)")
    parser.add_argument("--out", type=Path, default=OUTPUT_FILE, help="output JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every extraction event")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = Settings.from_env()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, settings.log_file)

    targets = args.targets or [str(p) for p in sorted(DATA_DIR.glob("*.html"))]
    t_wall_start = time.monotonic()
    outcomes, failures = await process_all(targets, settings, args.url)
    wall_clock = time.monotonic() - t_wall_start

    products_json = [o.product.to_response() for o in outcomes]
    args.out.write_text(json.dumps(products_json, indent=2))
    logger.info(f"Wrote {len(outcomes)} products to {args.out}")

    print_report(outcomes, failures, wall_clock)


if __name__ == "__main__":
    asyncio.run(main())
