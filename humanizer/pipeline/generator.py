"""Orchestrate humanized article generation.

Four-step process per article:
1. Session slot reserved and GenerationRequested announced
2. Persona, location and discussions selected (and marked used)
3. Insight pre-pass over the chosen discussions (parallel when chunkable)
4. Article generation with the persona framing and extracted insights
"""

from __future__ import annotations

import threading
import uuid
from typing import Iterable, Optional

from humanizer.config import DEFAULT_DISCUSSION_LIMIT, DEFAULT_MAX_INSIGHTS
from humanizer.errors import HumanizerError, InsightExtractionError, suggested_distribution
from humanizer.models import events
from humanizer.models.elements import VehicleRef
from humanizer.models.events import EventBus, EventDeliveryError, NullEventBus
from humanizer.pipeline.client import ClaudeClient
from humanizer.selection.selector import SelectionEngine
from humanizer.selection.sessions import GenerationSessionManager


class ArticlePipeline:
    def __init__(
        self,
        engine: SelectionEngine,
        client: ClaudeClient,
        sessions: GenerationSessionManager,
        bus: Optional[EventBus] = None,
    ):
        self.engine = engine
        self.client = client
        self.sessions = sessions
        self.bus = bus or engine.bus or NullEventBus()

    def generate(
        self,
        context: str,
        keywords: Iterable[str] = (),
        vehicle: Optional[VehicleRef] = None,
        session_id: Optional[str] = None,
        discussion_limit: int = DEFAULT_DISCUSSION_LIMIT,
        max_insights: int = DEFAULT_MAX_INSIGHTS,
        options: Optional[dict] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> dict:
        """Generate one humanized article inside a session.

        Without a session id a single-article session is opened and closed.

        Returns:
            {"article_id", "session_id", "title", "content", "metadata"}
        """
        keywords = list(keywords)
        owns_session = session_id is None
        if owns_session:
            session_id = self.sessions.start(name=context[:60], limit=1).id
        self.sessions.reserve(session_id, 1)

        article_id = uuid.uuid4().hex
        delivery_failures = []
        try:
            self.bus.publish(events.generation_requested(
                context, keywords, session_id=session_id,
                vehicle=vehicle.full_description if vehicle else None, article_id=article_id,
            ))
        except EventDeliveryError as e:
            delivery_failures.append(e.to_dict())

        try:
            result = self._generate(article_id, context, keywords, vehicle, discussion_limit,
                                    max_insights, options, cancel_event)
        except HumanizerError:
            self.sessions.record_result(session_id, succeeded=False)
            if owns_session:
                self.sessions.complete(session_id)
            raise

        self.sessions.record_result(session_id, succeeded=True)
        if owns_session:
            self.sessions.complete(session_id)
        result["session_id"] = session_id
        if delivery_failures:
            result["metadata"]["event_failures"] = delivery_failures
        return result

    def _generate(self, article_id, context, keywords, vehicle, discussion_limit, max_insights,
                  options, cancel_event) -> dict:
        print(f"  -> Selecting humanization elements for '{context}'...")
        selection = self.engine.select_humanization_set(
            context, keywords, vehicle=vehicle, discussion_limit=discussion_limit, article_id=article_id,
        )
        if selection is None:
            print("  Warning: no humanization set available, generating without persona")
            persona = location = None
            discussions = []
        else:
            persona, location, discussions = selection.persona, selection.location, selection.discussions
            print(f"  OK {persona.display_name} ({persona.profession}) in {location.full_name}, "
                  f"{len(discussions)} discussions")

        options = dict(options or {})
        insight_meta = None
        if discussions and "insights" not in options:
            extraction = self._extract_insights(discussions, context, max_insights, cancel_event)
            insight_meta = extraction["metadata"]
            if extraction["insights"]:
                options["insights"] = [
                    {"title": i.get("source_title") or "Discussion", "content": i.get("insight", "")}
                    for i in extraction["insights"]
                ]

        article = self.client.generate_article(
            context, keywords, persona=persona, location=location, discussions=discussions,
            vehicle=vehicle, options=options, cancel_event=cancel_event,
        )
        metadata = dict(article["metadata"])
        metadata["humanization"] = selection.to_dict() if selection else None
        metadata["insights"] = insight_meta
        return {
            "article_id": article_id,
            "title": article["title"],
            "content": article["content"],
            "metadata": metadata,
        }

    def _extract_insights(self, discussions, context, max_insights, cancel_event) -> dict:
        """Insight pre-pass. A failure leaves the article to be written from the excerpts."""
        try:
            return self.client.extract_insights(discussions, context, max_insights, cancel_event=cancel_event)
        except InsightExtractionError as e:
            if cancel_event is not None and cancel_event.is_set():
                raise
            print(f"  Warning: insight extraction failed, continuing without insights: {e.message}")
            return {"insights": [], "metadata": {
                "discussions_count": len(discussions),
                "all_chunks_failed": True,
                "error": e.to_dict(),
            }}

    def generate_batch(self, requests: list[dict], name: str = "batch") -> list[dict]:
        """Generate many articles, spreading them over as many sessions as the cap requires.

        Each request is a dict of ``generate`` keyword arguments. A failed
        article is reported in the results and the batch continues.
        """
        distribution = suggested_distribution(len(requests), self.sessions.limit)
        results = []
        queue = list(requests)
        for number, count in distribution.items():
            session = self.sessions.start(name=f"{name} #{number}")
            print(f"\n{'='*60}")
            print(f"Session {number}/{len(distribution)}: {count} articles")
            print(f"{'='*60}")
            for request in queue[:count]:
                try:
                    results.append(self.generate(session_id=session.id, **request))
                except HumanizerError as e:
                    print(f"  FAILED {request.get('context', '?')}: {e.message}")
                    results.append({"status": "failed", "request": request, "error": e.to_dict(),
                                    "session_id": session.id})
            queue = queue[count:]
            self.sessions.complete(session.id)
        return results
