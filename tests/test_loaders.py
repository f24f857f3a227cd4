"""Tests for seed data loading."""

import json

import pytest

from humanizer.config import DATA_DIR
from humanizer.loaders import build_store, load_locations, load_personas
from humanizer.models.elements import StateCode, TrafficPattern


def test_bundled_seed_data_loads():
    store = build_store(DATA_DIR)
    personas = store.all("persona")
    assert len(personas) == 5
    assert len(store.all("location")) == 6
    assert len(store.all("discussion")) == 6
    assert len(store.all("content_source")) == 4
    ana = store.get("persona", "p-ana")
    assert ana.preferred_vehicles == ["Honda Civic 2022", "Toyota Corolla 2021"]


def test_personas_csv(tmp_path):
    path = tmp_path / "personas.csv"
    path.write_text(
        "id,first_name,last_name,profession,location,preferred_vehicles\n"
        "p1, Ana ,Ribeiro,Médica,Recife/PE,Fiat Uno 2010| |Jeep Renegade 2021\n"
        ",,,,,\n",
        encoding="utf-8",
    )
    [persona] = load_personas(path)
    assert persona.display_name == "Ana Ribeiro"
    assert persona.preferred_vehicles == ["Fiat Uno 2010", "Jeep Renegade 2021"]


def test_locations_default_traffic(tmp_path):
    path = tmp_path / "locations.csv"
    path.write_text("id,city,region,state_code,traffic_pattern\nl1,Natal,Ponta Negra,rn,\n", encoding="utf-8")
    [location] = load_locations(path)
    assert location.state_code is StateCode.RN
    assert location.traffic_pattern is TrafficPattern.MODERATE


def test_missing_files_are_skipped(tmp_path):
    (tmp_path / "discussions.json").write_text(
        json.dumps([{"title": "Sem id", "content": "Gera um id"}]), encoding="utf-8",
    )
    store = build_store(tmp_path)
    [discussion] = store.all("discussion")
    assert discussion.id
    assert store.all("persona") == []


def test_json_must_be_a_list(tmp_path):
    (tmp_path / "content_sources.json").write_text('{"name": "x"}', encoding="utf-8")
    with pytest.raises(ValueError):
        build_store(tmp_path)
