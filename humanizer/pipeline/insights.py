"""Insight extraction from discussions, fanned out in parallel.

More than two discussions are split into chunks of two and each chunk is
sent as its own request on a thread pool. A failed chunk contributes no
insights and is listed in the metadata; the survivors are merged, sorted by
relevance (never by arrival order) and truncated.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Optional

from humanizer.config import INSIGHT_CHUNK_SIZE
from humanizer.errors import HumanizerError, InsightExtractionError, RequestCancelled
from humanizer.pipeline.prompts import INSIGHTS_SYSTEM_PROMPT, build_insights_prompt
from humanizer.pipeline.responses import json_list, message_text, parse_json_payload, sum_usage, token_usage

CANCEL_POLL_SECONDS = 0.1


def chunked(items: list, size: int = INSIGHT_CHUNK_SIZE) -> list[list]:
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


def _relevance(insight: dict) -> float:
    try:
        return float(insight.get("relevance_score", 0) or 0)
    except (TypeError, ValueError):
        return 0.0


def extract_chunk(client, chunk: list, context: str, max_insights: int, model: str,
                  cancel_event: Optional[threading.Event] = None) -> tuple[list[dict], dict]:
    """One request for one chunk. Returns (insights, token usage)."""
    message = client._send(
        InsightExtractionError,
        "extract insights",
        cancel_event=cancel_event,
        model=model,
        max_tokens=1500,
        temperature=0.2,
        system=INSIGHTS_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": build_insights_prompt(chunk, context, max_insights)}],
    )
    payload = parse_json_payload(message_text(message), InsightExtractionError, "insights")
    insights = []
    for item in json_list(payload, "insights", InsightExtractionError, "insights"):
        if not isinstance(item, dict):
            continue
        record = dict(item)
        source = record.get("source")
        if isinstance(source, int) and 1 <= source <= len(chunk):
            record["discussion_id"] = chunk[source - 1].id
            record["source_title"] = chunk[source - 1].title
        insights.append(record)
    return insights, token_usage(message)


def extract_insights(client, discussions: list, context: str, max_insights: int, model: str,
                     cancel_event: Optional[threading.Event] = None,
                     chunk_size: int = INSIGHT_CHUNK_SIZE) -> dict:
    """Return {"insights": [...], "metadata": {...}} for the discussions.

    With at most ``chunk_size`` discussions this is a single request and any
    failure propagates. Above that, chunk failures are tolerated; if every
    chunk fails the result is an empty list with ``all_chunks_failed`` set.
    """
    extracted_at = datetime.now(timezone.utc).isoformat()
    if not discussions:
        return {"insights": [], "metadata": {"model": model, "discussions_count": 0, "chunks_count": 0,
                                             "failed_chunks": [], "all_chunks_failed": False,
                                             "token_usage": sum_usage([]), "extracted_at": extracted_at}}

    print(f"  -> Extracting insights from {len(discussions)} discussions ({model})...")
    start = time.time()

    if len(discussions) <= chunk_size:
        insights, usage = extract_chunk(client, discussions, context, max_insights, model, cancel_event)
        chunks, failures, usages = [discussions], [], [usage]
        ordered = insights
    else:
        chunks = chunked(discussions, chunk_size)
        results, failures = _fan_out(client, chunks, context, max_insights, model, cancel_event)
        usages = [r[1] for r in results if r is not None]
        ordered = [i for r in results if r is not None for i in r[0]]
        if len(failures) == len(chunks):
            print(f"  Warning: all {len(chunks)} insight chunks failed, continuing without insights")

    ordered = sorted(ordered, key=_relevance, reverse=True)[:max_insights]
    elapsed = time.time() - start
    total_usage = sum_usage(usages)
    print(f"  OK {len(ordered)} insights from {len(chunks) - len(failures)}/{len(chunks)} chunks "
          f"in {elapsed:.1f}s ({total_usage['input_tokens']} in / {total_usage['output_tokens']} out)")

    return {
        "insights": ordered,
        "metadata": {
            "model": model,
            "extracted_at": extracted_at,
            "context": context,
            "discussions_count": len(discussions),
            "chunks_count": len(chunks),
            "failed_chunks": failures,
            "all_chunks_failed": bool(failures) and len(failures) == len(chunks),
            "token_usage": total_usage,
        },
    }


def _fan_out(client, chunks: list[list], context: str, max_insights: int, model: str,
             cancel_event: Optional[threading.Event]):
    """Run every chunk concurrently; collect results by chunk index."""
    results: list[Optional[tuple[list[dict], dict]]] = [None] * len(chunks)
    failures: list[dict] = []
    workers = max(1, min(len(chunks), client.settings.max_parallel_requests))
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="insights")
    futures: dict[Future, int] = {
        pool.submit(extract_chunk, client, chunk, context, max_insights, model, cancel_event): i
        for i, chunk in enumerate(chunks)
    }
    pending = set(futures)
    cancelled = False
    try:
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            timeout = CANCEL_POLL_SECONDS if cancel_event is not None else None
            done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            for future in done:
                index = futures[future]
                try:
                    results[index] = future.result()
                except RequestCancelled:
                    cancelled = True
                except HumanizerError as e:
                    print(f"  .. Insight chunk {index + 1}/{len(chunks)} failed: {e.message}")
                    failures.append({"chunk": index, "code": e.code, "message": e.message})
                except Exception as e:
                    print(f"  .. Insight chunk {index + 1}/{len(chunks)} failed unexpectedly: {e}")
                    failures.append({"chunk": index, "code": "unexpected_error", "message": str(e)})
            if cancelled:
                break
    finally:
        if cancelled:
            for future in pending:
                future.cancel()
        pool.shutdown(wait=not cancelled, cancel_futures=cancelled)

    if cancelled:
        raise InsightExtractionError(
            "Insight extraction cancelled",
            context={"chunks_count": len(chunks), "completed": sum(r is not None for r in results)},
        )
    failures.sort(key=lambda f: f["chunk"])
    return results, failures
