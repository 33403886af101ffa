"""Transcript post-processing."""

from __future__ import annotations

import re
from typing import Mapping

from typr.config import RewriteMode

EDITOR_DIRECTIVE = "note to the editor"

# Lowercased prefixes chat models like to open with
LLM_PREAMBLES = (
    "sure, here's the corrected text:",
    "sure, here is the corrected text:",
    "sure, here's the text:",
    "here's the corrected text:",
    "here is the corrected text:",
    "here's the rewritten text:",
    "here is the rewritten text:",
    "here's the text:",
    "here is the text:",
    "corrected text:",
    "rewritten text:",
    "sure!",
    "sure,",
    "certainly!",
    "of course!",
)


def apply_substitutions(text: str, substitutions: Mapping[str, str]) -> str:
    """Replace whole spoken words (case-insensitive) with their literal value."""
    for word, replacement in substitutions.items():
        if not word:
            continue
        pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
        text = pattern.sub(lambda _match: replacement, text)
    return text


def collapse_lines(text: str) -> str:
    lines = (line.strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def prepare_transcript(text: str, substitutions: Mapping[str, str]) -> str:
    return collapse_lines(apply_substitutions(text, substitutions))


def wants_rewrite(text: str, mode: RewriteMode) -> bool:
    if mode == RewriteMode.ALWAYS:
        return True
    if mode == RewriteMode.NEVER:
        return False
    return EDITOR_DIRECTIVE in text.lower()


def strip_llm_preamble(text: str) -> str:
    text = text.strip()
    lowered = text.lower()
    for preamble in LLM_PREAMBLES:
        if lowered.startswith(preamble):
            text = text[len(preamble):].strip()
            lowered = text.lower()

    if text.startswith("```") and text.endswith("```") and len(text) >= 6:
        text = text[3:-3].strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    return text.strip()
