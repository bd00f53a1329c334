"""
Diagnostic: run the parser and the heuristic pass only (no network, no semantic calls).
Reports what fields are filled vs missing for each saved HTML page.

    python diagnostics.py [page.html ...] [--url PAGE_URL]
"""

import sys
from pathlib import Path

from extractor import PRODUCT_FIELDS, extract_from_html
from main import page_url_from_html
from parser import parse_html

DATA_DIR = Path(__file__).parent / "data"


def _summarize(value) -> object:
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in list(value.items())[:8]) + (
            f" + {len(value) - 8} more" if len(value) > 8 else ""
        )
    if isinstance(value, str):
        return value[:150] + ("..." if len(value) > 150 else "")
    return value


def diagnose_file(filepath: Path, page_url: str | None = None) -> dict:
    html = filepath.read_text(encoding="utf-8")
    url = page_url or page_url_from_html(html)
    parsed = parse_html(html, url)

    # Report parser-level extraction
    parser_stats = {
        "page_url": url or "(unknown)",
        "json_ld_blocks": len(parsed.json_ld),
        "og_tags": len(parsed.og_tags),
        "embedded_json_sources": list(parsed.embedded_json.keys()),
        "body_text_chars": len(parsed.body_text),
        "image_candidates": len(parsed.image_urls),
        "breadcrumbs": parsed.breadcrumbs,
    }

    outcome = extract_from_html(html, url)
    product = outcome.product

    report = {
        "file": filepath.name,
        "parser": parser_stats,
        "fields": {},
        "missing": list(outcome.trace.fields_missing_after_all),
        "filled": [],
        "events": list(outcome.trace.events),
    }
    for field in PRODUCT_FIELDS:
        if field in report["missing"]:
            report["fields"][field] = None
            continue
        report["filled"].append(field)
        report["fields"][field] = _summarize(getattr(product, field))
    if product.discount_percent is not None:
        report["fields"]["price"] = f"{product.price} (was {product.original_price}, -{product.discount_percent}%)"
    return report


def main(argv: list[str] | None = None):
    argv = list(sys.argv[1:] if argv is None else argv)
    page_url = None
    if "--url" in argv:
        i = argv.index("--url")
        page_url = argv[i + 1] if i + 1 < len(argv) else None
        del argv[i : i + 2]
    html_files = [Path(a) for a in argv] or sorted(DATA_DIR.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files (heuristics only, NO network, NO semantic calls)\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_file(filepath, page_url)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}")
        print(f"{'=' * 70}")

        p = report["parser"]
        print(
            f"  Parser: {p['json_ld_blocks']} JSON-LD | {p['og_tags']} OG tags | "
            f"{len(p['embedded_json_sources'])} embedded JSON | {p['image_candidates']} image candidates"
        )
        print(f"  Page URL: {p['page_url']}")
        if p["breadcrumbs"]:
            print(f"  Breadcrumbs: {' > '.join(p['breadcrumbs'])}")

        print(f"\n  Filled ({len(report['filled'])}/{len(PRODUCT_FIELDS)}):")
        for field in report["filled"]:
            print(f"    {field}: {report['fields'][field]}")

        if report["missing"]:
            print(f"\n  MISSING ({len(report['missing'])}): {report['missing']}")
        else:
            print("\n  All fields filled!")

        if report["events"]:
            print("\n  Events:")
            for event in report["events"]:
                print(f"    {event}")
        print()

    # Summary table
    print(f"\n{'=' * 70}")
    print("SUMMARY: Field coverage across all files")
    print(f"{'=' * 70}")
    print(f"{'Field':<20} ", end="")
    for r in all_reports:
        print(f"{r['file'][:12]:<14}", end="")
    print()
    print("-" * 90)

    for field in PRODUCT_FIELDS:
        print(f"{field:<20} ", end="")
        for r in all_reports:
            print(f"{'OK' if field in r['filled'] else 'MISSING':<14}", end="")
        print()


if __name__ == "__main__":
    main()
