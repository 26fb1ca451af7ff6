"""
Narration Text Tests
====================
"""

from ad_narrator.narration.text import NarrationText


class TestNarrationText:

    def test_observers_see_changes_in_order(self):
        text = NarrationText()
        seen = []
        text.subscribe(seen.append)

        text.set("A")
        text.append("B")
        text.set("C")

        assert seen == ["A", "AB", "C"]
        assert text.version == 3

    def test_unchanged_writes_are_silent(self):
        text = NarrationText("A")
        seen = []
        text.subscribe(seen.append)

        text.set("A")
        text.append("")

        assert seen == []
        assert text.version == 0

    def test_unsubscribe(self):
        text = NarrationText()
        seen = []
        unsubscribe = text.subscribe(seen.append)

        text.set("A")
        unsubscribe()
        unsubscribe()
        text.set("B")

        assert seen == ["A"]
        assert text.observer_count == 0

    def test_failing_observer_does_not_block_others(self, caplog):
        text = NarrationText()
        seen = []

        def broken(value):
            raise RuntimeError("observer exploded")

        text.subscribe(broken)
        text.subscribe(seen.append)
        text.set("A")

        assert seen == ["A"]
        assert "observer exploded" in caplog.text

    def test_clear_observers(self):
        text = NarrationText()
        text.subscribe(lambda value: None)
        text.subscribe(lambda value: None)
        assert text.clear_observers() == 2
        assert text.observer_count == 0
