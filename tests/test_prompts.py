"""
Prompt Builder Tests
====================
"""

import pytest

from ad_narrator.models.state import PromptMode
from ad_narrator.narration.prompts import (
    ENGLISH_TEMPLATE,
    LOCALIZED_TEMPLATE,
    PromptBuilder,
    build_prompt,
)


class TestPromptBuilder:

    def test_no_context_localized(self):
        prompt = build_prompt(None, PromptMode.LOCALIZED)
        assert "前のフレームの説明: なし" in prompt
        assert "{previous}" not in prompt

    def test_no_context_english(self):
        prompt = build_prompt(None, PromptMode.ENGLISH)
        assert "Description of the previous frames: None" in prompt

    def test_empty_context_counts_as_none(self):
        assert build_prompt("", PromptMode.ENGLISH) == build_prompt(None, PromptMode.ENGLISH)

    def test_context_is_embedded_verbatim(self):
        context = "折りたたみ傘 - {雨} が降りそう"
        prompt = build_prompt(context)
        assert f"前のフレームの説明: {context}" in prompt

    def test_pure_function(self):
        assert build_prompt("abc") == build_prompt("abc")

    def test_templates_carry_instructions(self):
        for template in (LOCALIZED_TEMPLATE, ENGLISH_TEMPLATE):
            assert template.count("{previous}") == 1
        assert "search term" in ENGLISH_TEMPLATE
        assert "legible text" in ENGLISH_TEMPLATE

    def test_custom_template(self):
        builder = PromptBuilder(english_template="Before: {previous}")
        assert builder.build("x", PromptMode.ENGLISH) == "Before: x"
        assert builder.build(None, PromptMode.ENGLISH) == "Before: None"

    def test_custom_template_requires_placeholder(self):
        with pytest.raises(ValueError):
            PromptBuilder(localized_template="no placeholder")
