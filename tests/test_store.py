"""Tests for the in-memory element store."""

from datetime import timedelta

import pytest

from humanizer.models.elements import DiscussionCategory, ElementKind
from humanizer.store import CandidateFilter, InMemoryElementStore

from conftest import FIXED_NOW, make_discussion, make_persona


class TestInMemoryElementStore:
    def test_save_assigns_missing_id(self, store):
        persona = store.save(make_persona(""))
        assert persona.id
        assert store.get(ElementKind.PERSONA, persona.id).display_name == "Ana Ribeiro"

    def test_reads_are_snapshots(self, store):
        persona = store.get("persona", "p-ana")
        persona.usage_count = 99
        assert store.get("persona", "p-ana").usage_count == 0

    def test_mark_used_is_increment_and_fetch(self, store):
        first = store.mark_used(ElementKind.PERSONA, "p-ana")
        second = store.mark_used(ElementKind.PERSONA, "p-ana")
        assert (first.usage_count, second.usage_count) == (1, 2)
        assert second.last_used_at == FIXED_NOW
        assert store.tracker.selections == 2

    def test_mark_used_unknown_id(self, store):
        with pytest.raises(KeyError):
            store.mark_used(ElementKind.LOCATION, "nowhere")

    def test_delete(self, store):
        assert store.delete("location", "l-pr")
        assert not store.delete("location", "l-pr")
        assert [loc.id for loc in store.all("location")] == ["l-sp"]

    def test_least_used_orders_by_usage_then_recency(self, clock):
        store = InMemoryElementStore(clock=clock)
        store.add_all([
            make_persona("busy", usage_count=5),
            make_persona("old", usage_count=1, last_used_at=FIXED_NOW - timedelta(days=20)),
            make_persona("fresh", usage_count=1, last_used_at=FIXED_NOW - timedelta(days=1)),
            make_persona("never"),
        ])
        ids = [p.id for p in store.least_used(ElementKind.PERSONA, 3)]
        assert ids == ["never", "old", "fresh"]
        assert [p.id for p in store.least_used("persona", 10, exclude_ids={"never"})][0] == "old"


class TestFindCandidates:
    def test_recency_window(self, store):
        store.mark_used("persona", "p-ana")
        flt = CandidateFilter(unused_within_days=7)
        assert [p.id for p in store.find_candidates("persona", flt)] == ["p-joao"]

    def test_keywords_and_exclusions(self, store):
        flt = CandidateFilter(keywords=("civic",), exclude_ids=frozenset({"d-brakes"}))
        assert [d.id for d in store.find_candidates("discussion", flt)] == ["d-oil"]

    def test_categories_and_relevance(self, store):
        store.save(make_discussion("d-news", category=DiscussionCategory.NEWS, relevance_score=10))
        flt = CandidateFilter(categories=(DiscussionCategory.NEWS,))
        assert [d.id for d in store.find_candidates("discussion", flt)] == ["d-news"]
        flt = CandidateFilter(min_relevance=80)
        assert {d.id for d in store.find_candidates("discussion", flt)} == {"d-oil", "d-onix"}

    def test_topics_and_active_only(self, store):
        blog = store.get("content_source", "s-blog")
        blog.is_active = False
        store.save(blog)
        flt = CandidateFilter(topics=("civic",), active_only=True)
        assert [s.id for s in store.find_candidates("content_source", flt)] == ["s-forum"]

    def test_limit(self, store):
        assert len(store.find_candidates("discussion", CandidateFilter(limit=2))) == 2
