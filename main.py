#!/usr/bin/env python3
"""Main pipeline: generate humanized articles with rotating personas, locations and discussions.

Usage:
    python main.py --context "Manutenção preventiva do Civic"          # One article
    python main.py --context "..." --keywords "óleo,revisão" --count 3  # Three articles
    python main.py --context "..." --vehicle "Honda Civic EXL 2022"     # Vehicle-focused persona
    python main.py --context "..." --dry-run                            # Select elements, don't call API
    python main.py --status                                             # Check Claude API status
"""

import argparse
import json
import os
import re
import sys
import unicodedata

import markdown as md_lib

from humanizer.config import ARTICLE_OUTPUT_DIR, DATA_DIR, MAX_ARTICLES_PER_SESSION, load_settings
from humanizer.errors import HumanizerError
from humanizer.loaders import build_store
from humanizer.models import EventDispatcher, EventType, VehicleRef
from humanizer.pipeline import ArticlePipeline, ClaudeClient
from humanizer.selection.selector import SelectionEngine
from humanizer.selection.sessions import GenerationSessionManager


def slugify(text: str) -> str:
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")[:60] or "article"


def ensure_html(article: str) -> str:
    """If the article already looks like HTML keep it, otherwise convert from markdown."""
    html_indicators = ["<h1>", "<h2>", "<p>", "<p ", "<a href="]
    if any(indicator in article for indicator in html_indicators):
        return article.strip()
    return md_lib.markdown(article, extensions=["extra", "sane_lists", "smarty"])


def save_article(result: dict, output_dir: str) -> dict:
    """Write <slug>.md, <slug>.html and <slug>_metadata.json."""
    os.makedirs(output_dir, exist_ok=True)
    slug = f"{slugify(result['title'])}-{result['article_id'][:8]}"
    paths = {
        "markdown": os.path.join(output_dir, f"{slug}.md"),
        "html": os.path.join(output_dir, f"{slug}.html"),
        "metadata": os.path.join(output_dir, f"{slug}_metadata.json"),
    }
    with open(paths["markdown"], "w", encoding="utf-8") as f:
        f.write(result["content"])
    with open(paths["html"], "w", encoding="utf-8") as f:
        f.write(ensure_html(result["content"]))
    with open(paths["metadata"], "w", encoding="utf-8") as f:
        json.dump(result["metadata"], f, indent=2, ensure_ascii=False, default=str)
    print(f"  ✓ Saved to {paths['markdown']}")
    return paths


def dry_run(engine: SelectionEngine, context: str, keywords: list, vehicle, count: int) -> list:
    results = []
    for i in range(1, count + 1):
        selection = engine.select_humanization_set(context, keywords, vehicle=vehicle)
        print(f"\n[{i}/{count}]")
        if selection is None:
            print("  [DRY RUN] No compatible element set available")
            results.append({"dry_run": True, "selection": None})
            continue
        print(f"  [DRY RUN] Would generate article with:")
        print(f"    Persona: {selection.persona.display_name} ({selection.persona.profession})")
        print(f"    Location: {selection.location.full_name}")
        print(f"    Discussions: {[d.title for d in selection.discussions]}")
        print(f"    Context score: {selection.context_score}")
        results.append({"dry_run": True, "selection": selection.to_dict()})
    return results


def main():
    parser = argparse.ArgumentParser(description="Generate humanized articles with Claude")
    parser.add_argument("--context", type=str, default="", help="Article topic")
    parser.add_argument("--keywords", type=str, default="", help="Comma-separated keywords")
    parser.add_argument("--vehicle", type=str, default="", help='Vehicle, e.g. "Honda Civic EXL 2022"')
    parser.add_argument("--count", type=int, default=1, help="Number of articles to generate")
    parser.add_argument("--data-dir", type=str, default=str(DATA_DIR), help="Seed data directory")
    parser.add_argument("--output-dir", type=str, default=str(ARTICLE_OUTPUT_DIR), help="Where to save articles")
    parser.add_argument("--faq", type=int, default=0, help="Also generate N FAQs per article")
    parser.add_argument("--titles", type=int, default=0, help="Also suggest N alternative titles")
    parser.add_argument("--dry-run", action="store_true", help="Select elements without calling Claude API")
    parser.add_argument("--status", action="store_true", help="Check Claude API status and exit")
    args = parser.parse_args()

    if not args.status and not args.context:
        parser.error("--context is required unless --status is given")
    if args.count < 1:
        parser.error("--count must be at least 1")

    keywords = [k.strip() for k in args.keywords.split(",") if k.strip()]
    try:
        vehicle = VehicleRef.from_string(args.vehicle) if args.vehicle else None
    except ValueError as e:
        parser.error(str(e))

    bus = EventDispatcher()
    bus.subscribe(
        lambda e: print(f"  ! {e['element_type']} {e['element_name']} reached {e['threshold']} uses"),
        EventType.USAGE_THRESHOLD_REACHED,
    )

    print(f"Loading elements from {args.data_dir}")
    store = build_store(args.data_dir)
    engine = SelectionEngine(store, bus=bus)

    if args.dry_run:
        dry_run(engine, args.context, keywords, vehicle, args.count)
        return

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)
    client = ClaudeClient(settings)

    if args.status:
        print(json.dumps(client.get_api_status(), indent=2))
        return

    sessions = GenerationSessionManager(limit=MAX_ARTICLES_PER_SESSION)
    pipeline = ArticlePipeline(engine, client, sessions, bus=bus)
    requests = [{"context": args.context, "keywords": keywords, "vehicle": vehicle} for _ in range(args.count)]
    results = pipeline.generate_batch(requests, name=slugify(args.context))

    summary = []
    for result in results:
        if result.get("status") == "failed":
            summary.append({"status": "failed", "error": result["error"]})
            continue
        paths = save_article(result, args.output_dir)
        extras = {}
        try:
            if args.titles:
                extras["alternative_titles"] = client.generate_alternative_titles(
                    result["content"], result["title"], args.titles
                )
            if args.faq:
                extras["faqs"] = client.generate_faq(result["content"], args.faq)["faqs"]
        except HumanizerError as e:
            print(f"  Warning: extras failed for '{result['title']}': {e.message}")
            extras["error"] = e.to_dict()
        summary.append({
            "status": "ok",
            "title": result["title"],
            "paths": paths,
            "word_count": len(result["content"].split()),
            "session_id": result["session_id"],
            **extras,
        })

    # Summary
    print(f"\n\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    for s in summary:
        if s["status"] == "ok":
            print(f"  ✓ {s['title']}: {s['word_count']} words")
        else:
            print(f"  ✗ failed: {s['error']['message']}")
    stats = store.tracker.usage_statistics(store.all())
    print(f"  Element selections this run: {stats['selections']}, pairings: {stats['combinations']}")

    summary_path = os.path.join(args.output_dir, "_summary.json")
    os.makedirs(args.output_dir, exist_ok=True)
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump({"articles": summary, "usage": stats}, f, indent=2, ensure_ascii=False, default=str)
    print(f"\nSummary saved to {summary_path}")


if __name__ == "__main__":
    main()
