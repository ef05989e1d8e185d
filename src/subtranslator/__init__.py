"""subtranslator: batch translation of SRT subtitle files through LLM providers."""

__version__ = "1.0.0"
