"""Instruction and user-message builders for the provider wire contract.

The translation request is a system instruction plus a user message holding
the batch as a JSON string array; the expected answer is
``{"translations": [...]}`` with one entry per input string.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

TRANSLATE_HEADER = "Translate the following subtitle texts (provided as JSON array):"
TRANSLATE_FOOTER = (
    'Provide the translated texts in a JSON object with a "translations" array in the '
    'same order. Example: { "translations": ["translated text 1", "translated text 2", ...] }'
)
EXTRACT_HEADER = "Extract and translate important terms from the following subtitle text:"
EXTRACT_FOOTER = "Respond only with a valid JSON object containing the terminology array."


def _glossary_table(terms: Mapping[str, str]) -> str:
    lines = ["Original | Translation", "-------- | -----------"]
    lines.extend(f"{source} | {target}" for source, target in terms.items())
    return "\n".join(lines)


def render_glossary(terms: Mapping[str, str]) -> str:
    """Instruction section that pins glossary terms to fixed translations."""
    if not terms:
        return ""
    return (
        "\nIMPORTANT: You MUST use the following terminology consistently in your "
        "translations. These terms have been pre-translated specifically for this "
        "content and must be used exactly as provided:\n"
        + _glossary_table(terms)
        + "\n\nWhen you encounter any of these terms in the source text, you MUST use "
        "the provided translation. This ensures consistency throughout the entire "
        "subtitle file. Do not translate these terms differently."
        '\n\nIMPORTANT: Your response MUST be a valid JSON object with the exact format: '
        '{ "translations": ["translated text 1", "translated text 2", ...] }'
    )


def translation_instruction(
    target_lang: str,
    source_lang: str | None = None,
    glossary: Mapping[str, str] | None = None,
) -> str:
    """System instruction for translating one batch."""
    prompt = "You are a professional subtitle translator. "
    if source_lang:
        prompt += f"Translate from {source_lang} to {target_lang}. "
    else:
        prompt += f"Translate to {target_lang}. "
    prompt += "Preserve all formatting, line breaks, and special characters. "
    prompt += (
        "\nYour task is to translate each subtitle text accurately while maintaining "
        "the original meaning and tone.\n"
        "Each array item is a separate subtitle line: never merge, split or drop "
        "lines, even when consecutive lines form one sentence. The output array "
        "must have exactly as many items as the input array.\n"
        'Respond with a JSON object containing a "translations" array with the '
        "translated texts in the same order as the input.\n"
        'Example response format: { "translations": ["translated text 1", '
        '"translated text 2", ...] }\n'
    )
    if glossary:
        prompt += render_glossary(glossary)
    return prompt


def translation_user_content(texts: list[str]) -> str:
    """User message carrying the batch as a JSON string array."""
    payload = json.dumps(texts, ensure_ascii=False)
    return f"{TRANSLATE_HEADER}\n{payload}\n\n{TRANSLATE_FOOTER}"


def parse_translation_user_content(content: str) -> list[str] | None:
    """Recover the batch texts from a translation user message, or None."""
    if not content.startswith(TRANSLATE_HEADER):
        return None
    # json.dumps escapes newlines, so the array sits on a single line
    lines = content.split("\n")
    if len(lines) < 2:
        return None
    try:
        texts = json.loads(lines[1])
    except json.JSONDecodeError:
        return None
    if isinstance(texts, list) and all(isinstance(t, str) for t in texts):
        return texts
    return None


def extraction_instruction(
    target_lang: str,
    source_lang: str | None = None,
    known_terms: Mapping[str, str] | None = None,
) -> str:
    """System instruction for terminology extraction."""
    if source_lang:
        languages = f"The text is in {source_lang}. Translate the terms to {target_lang}."
    else:
        languages = f"Translate the terms to {target_lang}."
    prompt = (
        "You are a professional terminology extractor and translator specialized in "
        "subtitle content.\n"
        "Your task is to identify important terms, names, and recurring phrases from "
        "the provided subtitle text, and translate them.\n"
        f"{languages}\n"
        "Focus on extracting:\n"
        "1. Character names and proper nouns\n"
        "2. Technical terms and specialized vocabulary\n"
        "3. Recurring phrases that need consistent translation\n"
        "4. Cultural references that require careful translation\n\n"
        "Extract only terms that appear multiple times and should be consistently "
        "translated.\n"
    )
    if known_terms:
        prompt += (
            "\nThe following terms already have fixed translations. Keep them exactly "
            "as given and do not propose alternatives:\n"
            + _glossary_table(known_terms)
            + "\n"
        )
    prompt += (
        "\nIMPORTANT: Your response MUST follow this exact JSON format:\n"
        "{\n"
        '  "terminology": [\n'
        '    {"original": "term1", "translated": "translated term 1"},\n'
        '    {"original": "term2", "translated": "translated term 2"}\n'
        "  ]\n"
        "}\n\n"
        "Do not include any text outside of this JSON structure. The response must be "
        "valid parseable JSON."
    )
    return prompt


def extraction_user_content(text: str) -> str:
    return f"{EXTRACT_HEADER}\n\n{text}\n\n{EXTRACT_FOOTER}"
