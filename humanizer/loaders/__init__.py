"""Data loading: seed elements from CSV and JSON files."""

from humanizer.loaders.elements import (
    build_store,
    load_discussions,
    load_locations,
    load_personas,
    load_sources,
)

__all__ = [
    "build_store",
    "load_discussions",
    "load_locations",
    "load_personas",
    "load_sources",
]
