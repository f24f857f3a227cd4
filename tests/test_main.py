"""Tests for the CLI output helpers."""

import json

from main import ensure_html, save_article, slugify


def test_slugify():
    assert slugify("Manutenção do Civic: guia 2026!") == "manutencao-do-civic-guia-2026"
    assert slugify("???") == "article"


def test_ensure_html_converts_markdown_once():
    html = ensure_html("# Título\n\n- um\n- dois")
    assert "<h1>Título</h1>" in html
    assert "<li>um</li>" in html
    assert ensure_html("<h1>Pronto</h1>") == "<h1>Pronto</h1>"


def test_save_article_writes_three_files(tmp_path):
    result = {
        "article_id": "abcdef1234567890",
        "title": "Troca de óleo",
        "content": "# Troca de óleo\n\nTexto.",
        "metadata": {"model": "claude-opus-4-6"},
    }
    paths = save_article(result, str(tmp_path))

    assert paths["markdown"].endswith("troca-de-oleo-abcdef12.md")
    with open(paths["metadata"], encoding="utf-8") as f:
        assert json.load(f) == {"model": "claude-opus-4-6"}
    with open(paths["html"], encoding="utf-8") as f:
        assert "<h1>Troca de óleo</h1>" in f.read()
