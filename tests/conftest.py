"""Shared fixtures: sample elements, a fixed clock and a fake Anthropic client."""

import random
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from humanizer.config import ClaudeSettings
from humanizer.models.elements import (
    ContentSource,
    Discussion,
    DiscussionCategory,
    Location,
    Persona,
    PersonaName,
    SourceType,
    StateCode,
    utcnow,
)
from humanizer.pipeline.client import ClaudeClient
from humanizer.pipeline.rate_limit import RateLimiter
from humanizer.store import InMemoryElementStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
MESSAGES_URL = "https://api.anthropic.com/v1/messages"


def fake_message(text, input_tokens=10, output_tokens=20):
    """Shape of an anthropic Message as far as the client reads it."""
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def api_status_error(status, message="upstream said no"):
    request = httpx.Request("POST", MESSAGES_URL)
    response = httpx.Response(status, request=request)
    body = {"type": "error", "error": {"type": "api_error", "message": message}}
    return anthropic.APIStatusError(message, response=response, body=body)


def api_connection_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", MESSAGES_URL))


def make_persona(pid, first="Ana", last="Ribeiro", profession="Engenheira de Software",
                 location="São Paulo - SP", vehicles=(), usage_count=0, last_used_at=None):
    return Persona(
        id=pid,
        name=PersonaName(first, last),
        profession=profession,
        location=location,
        preferred_vehicles=list(vehicles),
        usage_count=usage_count,
        last_used_at=last_used_at,
    )


def make_location(lid, city="São Paulo", state="SP", region="Centro", usage_count=0, last_used_at=None):
    return Location(id=lid, city=city, region=region, state_code=StateCode(state),
                    usage_count=usage_count, last_used_at=last_used_at)


def make_discussion(did, title="Troca de óleo do Civic", content="Óleo sintético a cada 10 mil km",
                    tags=("civic", "óleo"), category=DiscussionCategory.MAINTENANCE,
                    published_at=None, relevance_score=50, usage_count=0, last_used_at=None):
    return Discussion(
        id=did,
        title=title,
        content=content,
        tags=list(tags),
        category=category,
        published_at=published_at or utcnow() - timedelta(days=5),
        relevance_score=relevance_score,
        usage_count=usage_count,
        last_used_at=last_used_at,
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def store(clock):
    s = InMemoryElementStore(clock=clock)
    s.add_all([
        make_persona("p-ana", vehicles=["Honda Civic 2022"]),
        make_persona("p-joao", "João", "Carvalho", "Mecânico", "Curitiba - PR", vehicles=["Fiat Strada 2023"]),
        make_location("l-sp"),
        make_location("l-pr", city="Curitiba", state="PR", region="Batel"),
        make_discussion("d-oil", relevance_score=90),
        make_discussion("d-brakes", title="Pastilhas de freio do Civic", content="Rangendo na chuva",
                        tags=("civic", "freio"), relevance_score=70),
        make_discussion("d-onix", title="Onix consumo na estrada", content="Faz 15 km/l",
                        tags=("onix",), relevance_score=99),
        ContentSource(id="s-forum", name="Fórum do Civic", url="https://civic.example.com",
                      source_type=SourceType.FORUM, trust_score=80, topics=["civic"]),
        ContentSource(id="s-blog", name="Blog Carros", url="https://blog.example.com",
                      source_type=SourceType.BLOG, trust_score=60, topics=["civic", "onix"]),
    ])
    return s


@pytest.fixture
def settings():
    return ClaudeSettings(api_key="test-key", base_retry_delay_ms=1, max_parallel_requests=3)


@pytest.fixture
def anthropic_client():
    client = MagicMock()
    client.messages.create.return_value = fake_message("# Título\n\nCorpo do artigo.")
    return client


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def claude(settings, anthropic_client, sleeps):
    return ClaudeClient(settings, client=anthropic_client, rate_limiter=RateLimiter(1000), sleep=sleeps.append)
