"""Article generation: prompts, Claude client with retry/backoff, parallel insight extraction."""

from humanizer.pipeline.client import ClaudeClient
from humanizer.pipeline.generator import ArticlePipeline

__all__ = ["ClaudeClient", "ArticlePipeline"]
