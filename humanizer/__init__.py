"""Humanized article generator: rotating personas, locations and discussions around Claude.

Package structure:
    humanizer/config.py       – paths, Claude settings, selection and session limits
    humanizer/errors.py       – error taxonomy shared by every layer
    humanizer/models/         – personas, locations, discussions, sources, domain events
    humanizer/store.py        – element store interface and the in-memory implementation
    humanizer/loaders/        – seed data loading (CSV / JSON)
    humanizer/selection/      – usage tracking, compatibility rules, selection, sessions
    humanizer/pipeline/       – prompts, retry/backoff, Claude client, insight fan-out
"""
