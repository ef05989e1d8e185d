"""Dummy provider for testing: prefixes strings with a [XX] tag."""

from __future__ import annotations

import json

from subtranslator.backends.base import ProviderClient
from subtranslator.translation.prompts import parse_translation_user_content


class DummyProvider(ProviderClient):
    """Test provider that answers translation requests by tagging each line.

    Example: "Hello" → "[ES] Hello". Terminology requests get an empty list.
    """

    name = "dummy"

    def __init__(self, target_lang: str = "XX") -> None:
        self.target_lang = target_lang
        self.calls = 0

    async def complete(self, model: str, instruction: str, user_content: str) -> str:
        self.calls += 1
        texts = parse_translation_user_content(user_content)
        if texts is None:
            return json.dumps({"terminology": []})
        tag = f"[{self.target_lang.upper()}]"
        return json.dumps(
            {"translations": [f"{tag} {text}" for text in texts]}, ensure_ascii=False
        )
