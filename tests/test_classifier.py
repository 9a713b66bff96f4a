"""
Tests for keyword-based intent classification.
"""

import pytest

from livegen.classifier import CHAT, GENERATE, classify_intent


class TestClassifyIntent:
    @pytest.mark.parametrize("prompt", [
        "Create a landing page for a coffee shop",
        "build me a portfolio",
        "I want a new   app for recipes",
        "A DASHBOARD with charts please",
    ])
    def test_generation(self, prompt):
        assert classify_intent(prompt) == GENERATE

    @pytest.mark.parametrize("prompt", [
        "How do I add routing?",
        "why is the button blue",
        "explain useEffect",
        "there is an error in the console",
    ])
    def test_chat(self, prompt):
        assert classify_intent(prompt) == CHAT

    def test_earliest_keyword_wins(self):
        assert classify_intent("Make a todo app and explain how it works") == GENERATE
        assert classify_intent("How would you build a blog?") == CHAT
        assert classify_intent("fix the build") == CHAT

    def test_whole_words_only(self):
        # "showcase" contains "how", "remake" contains "make"
        assert classify_intent("showcase", default=GENERATE) == GENERATE
        assert classify_intent("remake", default=CHAT) == CHAT

    def test_default_when_nothing_matches(self):
        assert classify_intent("a coffee shop site") == CHAT
        assert classify_intent("a coffee shop site", default=GENERATE) == GENERATE
        assert classify_intent("", default=GENERATE) == GENERATE
