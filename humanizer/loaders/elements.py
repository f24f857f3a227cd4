"""Load seed personas, locations, discussions and content sources into a store."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Optional

from humanizer.config import DATA_DIR
from humanizer.models.elements import (
    ContentSource,
    Discussion,
    Location,
    Persona,
    PersonaName,
    StateCode,
    TrafficPattern,
)
from humanizer.store import InMemoryElementStore


def _load_csv_rows(path: Path) -> list[dict]:
    """Read a CSV with a header row into dicts, stripping whitespace."""
    rows = []
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            clean = {k.strip(): (v or "").strip() for k, v in row.items() if k}
            if any(clean.values()):
                rows.append(clean)
    return rows


def _load_json_list(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")
    return data


def load_personas(path: Path) -> list[Persona]:
    """Columns: id, first_name, last_name, profession, location, preferred_vehicles ('|' separated)."""
    personas = []
    for row in _load_csv_rows(path):
        vehicles = [v for v in row.get("preferred_vehicles", "").split("|") if v.strip()]
        personas.append(Persona(
            id=row.get("id", ""),
            name=PersonaName(row["first_name"], row["last_name"]),
            profession=row["profession"],
            location=row.get("location", ""),
            preferred_vehicles=vehicles,
        ))
    return personas


def load_locations(path: Path) -> list[Location]:
    """Columns: id, city, region, state_code, traffic_pattern."""
    return [
        Location(
            id=row.get("id", ""),
            city=row["city"],
            region=row.get("region", ""),
            state_code=StateCode(row["state_code"].upper()),
            traffic_pattern=TrafficPattern(row.get("traffic_pattern") or "moderate"),
        )
        for row in _load_csv_rows(path)
    ]


def load_discussions(path: Path) -> list[Discussion]:
    return [Discussion.from_dict({"id": "", **item}) for item in _load_json_list(path)]


def load_sources(path: Path) -> list[ContentSource]:
    return [ContentSource.from_dict({"id": "", **item}) for item in _load_json_list(path)]


def build_store(data_dir: Optional[Path] = None, store: Optional[InMemoryElementStore] = None) -> InMemoryElementStore:
    """Fill a store from ``personas.csv``, ``locations.csv``, ``discussions.json``
    and ``content_sources.json``. Missing files are skipped."""
    data_dir = Path(data_dir or DATA_DIR)
    store = store or InMemoryElementStore()
    loaders = [
        ("personas.csv", load_personas),
        ("locations.csv", load_locations),
        ("discussions.json", load_discussions),
        ("content_sources.json", load_sources),
    ]
    for filename, loader in loaders:
        path = data_dir / filename
        if not path.exists():
            print(f"  Warning: {path} not found, skipping")
            continue
        count = store.add_all(loader(path))
        print(f"  → {count} records from {filename}")
    return store
