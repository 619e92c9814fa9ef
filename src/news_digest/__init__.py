"""Topic news search with style-aware LLM summaries, caching and extractive fallback."""

__all__ = ["config", "models", "summarizer", "search", "server"]
