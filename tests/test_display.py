"""
Unit tests for telemetry displays, the display preference and message traversal.
"""

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

import yaml

from token_telemetry.core.messages import cumulative_tokens, flatten, iter_depth_first
from token_telemetry.core.rate_estimator import StreamingRateEstimator
from token_telemetry.display.message_tokens import MessageTokens
from token_telemetry.display.preferences import (
    PREFERENCE_KEY,
    PreferenceStore,
    TelemetryPreference,
)
from token_telemetry.display.streaming_stats import StreamingStats


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@dataclass
class Message:
    message_id: str
    token_count: Optional[int] = None
    children: List["Message"] = field(default_factory=list)


def _conversation():
    return [
        {"messageId": "a", "tokenCount": 10, "children": [
            {"messageId": "b", "tokenCount": 20, "children": [
                {"messageId": "c", "tokenCount": 30, "children": []},
            ]},
            {"messageId": "d", "tokenCount": 5},
        ]},
        {"messageId": "e", "tokenCount": None},
    ]


class TestTreeTraversal:
    """Test depth-first flattening of nested messages."""

    def test_preorder(self):
        ids = [m["messageId"] for m in flatten(_conversation())]
        assert ids == ["a", "b", "c", "d", "e"]

    def test_custom_children_accessor(self):
        tree = [(1, [(2, []), (3, [(4, [])])])]
        values = [node[0] for node in iter_depth_first(tree, children=lambda n: n[1])]
        assert values == [1, 2, 3, 4]

    def test_objects_with_children_attribute(self):
        tree = [Message("root", 1, [Message("child", 2)])]
        assert [m.message_id for m in flatten(tree)] == ["root", "child"]

    def test_deep_tree_does_not_recurse(self):
        root = node = {"messageId": "0", "children": []}
        for i in range(1, 5000):
            child = {"messageId": str(i), "children": []}
            node["children"].append(child)
            node = child
        assert len(flatten([root])) == 5000


class TestCumulativeTokens:
    """Test conversation totals up to a message."""

    def test_includes_target_message(self):
        assert cumulative_tokens(_conversation(), "c") == 60

    def test_counts_earlier_siblings_branch(self):
        assert cumulative_tokens(_conversation(), "d") == 65

    def test_unknown_id_counts_everything(self):
        assert cumulative_tokens(_conversation(), "zzz") == 65

    def test_empty_history(self):
        assert cumulative_tokens([], "a") == 0
        assert cumulative_tokens(None, "a") == 0

    def test_snake_case_objects(self):
        tree = [Message("root", 100, [Message("child", 50)])]
        assert cumulative_tokens(tree, "root") == 100
        assert cumulative_tokens(tree, "child") == 150


class TestPreferenceStore:
    """Test durable storage of the display preference."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "nested", "prefs.yaml")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults_to_enabled(self):
        assert PreferenceStore(self.path).read() is True

    def test_write_then_read(self):
        store = PreferenceStore(self.path)
        store.write(False)
        assert store.read() is False
        with open(self.path, encoding="utf-8") as f:
            assert yaml.safe_load(f) == {PREFERENCE_KEY: False}

    def test_preserves_other_keys(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"theme": "dark"}, f)
        PreferenceStore(self.path).write(False)
        with open(self.path, encoding="utf-8") as f:
            assert yaml.safe_load(f) == {"theme": "dark", PREFERENCE_KEY: False}

    def test_unreadable_file_uses_default(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{ not: [valid yaml")
        assert PreferenceStore(self.path).read() is True

    def test_non_boolean_value_uses_default(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump({PREFERENCE_KEY: "nope"}, f)
        assert PreferenceStore(self.path).read() is True


class TestTelemetryPreference:
    """Test the observable preference cell."""

    def test_notifies_on_change_only(self):
        preference = TelemetryPreference(True)
        seen = []
        preference.subscribe(seen.append)
        preference.set(True)
        preference.set(False)
        preference.set(False)
        preference.toggle()
        assert seen == [False, True]

    def test_unsubscribe(self):
        preference = TelemetryPreference(True)
        seen = []
        unsubscribe = preference.subscribe(seen.append)
        unsubscribe()
        preference.set(False)
        assert seen == []
        assert preference.listener_count == 0

    def test_writes_through_to_store(self):
        temp_dir = tempfile.mkdtemp()
        try:
            store = PreferenceStore(os.path.join(temp_dir, "prefs.yaml"))
            preference = TelemetryPreference.load(store)
            assert preference.value is True
            preference.set(False)
            assert TelemetryPreference.load(store).value is False
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def test_set_over_corrupt_file_notifies_and_rewrites(self):
        temp_dir = tempfile.mkdtemp()
        try:
            path = os.path.join(temp_dir, "prefs.yaml")
            with open(path, "w", encoding="utf-8") as f:
                f.write(f"{PREFERENCE_KEY}: [unclosed")
            store = PreferenceStore(path)
            preference = TelemetryPreference.load(store)
            seen = []
            preference.subscribe(seen.append)

            preference.set(False)

            assert preference.value is False
            assert seen == [False]
            assert store.read() is False
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    def test_unwritable_store_still_notifies(self):
        temp_dir = tempfile.mkdtemp()
        try:
            blocker = os.path.join(temp_dir, "not-a-dir")
            open(blocker, "w").close()
            store = PreferenceStore(os.path.join(blocker, "prefs.yaml"))
            preference = TelemetryPreference(True, store)
            badge = MessageTokens(preference)
            badge.mount()

            preference.set(False)

            assert preference.value is False
            assert badge.render(42) is None
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)


class TestMessageTokens:
    """Test the per-message token badge."""

    def test_renders_message_and_cumulative(self):
        badge = MessageTokens(TelemetryPreference(True))
        badge.mount()
        assert badge.render(30, "c", _conversation()) == "30 / 60"

    def test_without_history_uses_own_count(self):
        badge = MessageTokens(TelemetryPreference(True))
        assert badge.render(1200) == "1,200 / 1,200"

    def test_zero_message_tokens_shows_cumulative_only(self):
        badge = MessageTokens(TelemetryPreference(True))
        assert badge.render(None, "e", _conversation()) == "65"

    def test_nothing_to_show(self):
        badge = MessageTokens(TelemetryPreference(True))
        assert badge.render(0) is None

    def test_hidden_when_disabled_at_mount(self):
        badge = MessageTokens(TelemetryPreference(False))
        badge.mount()
        assert badge.render(100) is None


class TestStreamingStats:
    """Test the live/final rate badge."""

    def _widget(self, preference=None):
        clock = FakeClock()
        preference = preference or TelemetryPreference(True)
        widget = StreamingStats(preference, StreamingRateEstimator(clock=clock))
        widget.mount()
        return widget, clock

    def _stream(self, widget, clock, steps=10):
        widget.update("x", is_submitting=True, is_latest=True, message_id="m1")
        for step in range(1, steps + 1):
            clock.now = step * 200
            widget.update("x" * (step * 40), is_submitting=True, is_latest=True, message_id="m1")
            widget.tick()

    def test_live_rate_while_streaming(self):
        widget, clock = self._widget()
        self._stream(widget, clock)
        assert widget.render() == "50 tokens/s"

    def test_zero_live_rate_is_hidden(self):
        widget, clock = self._widget()
        widget.update("xxxx", is_submitting=True, is_latest=True, message_id="m1")
        widget.tick()
        assert widget.render() is None

    def test_final_stats_after_completion(self):
        widget, clock = self._widget()
        self._stream(widget, clock)
        published = widget.update("x" * 400, is_submitting=False, is_latest=True, message_id="m1")
        assert published.rate == 50
        assert widget.render() == "~100 tokens @ 50 tokens/s (2.0s)"

    def test_explicit_finish(self):
        widget, clock = self._widget()
        self._stream(widget, clock)
        assert widget.finish().total_tokens == 100
        assert widget.render() == "~100 tokens @ 50 tokens/s (2.0s)"

    def test_final_stats_hidden_when_not_latest(self):
        widget, clock = self._widget()
        self._stream(widget, clock)
        widget.update("x" * 400, is_submitting=False, is_latest=True, message_id="m1")
        widget.update("x" * 400, is_submitting=False, is_latest=False, message_id="m1")
        assert widget.render() is None

    def test_short_response_shows_nothing(self):
        widget, clock = self._widget()
        self._stream(widget, clock, steps=2)
        widget.update("x" * 80, is_submitting=False, is_latest=True, message_id="m1")
        assert widget.render() is None


class TestPreferenceToggle:
    """Toggling the preference suppresses every mounted display at once."""

    def test_toggle_off_hides_all_without_remount(self):
        preference = TelemetryPreference(True)
        clock = FakeClock()
        stats = StreamingStats(preference, StreamingRateEstimator(clock=clock))
        tokens = MessageTokens(preference)
        stats.mount()
        tokens.mount()

        stats.update("x", is_submitting=True, is_latest=True, message_id="m1")
        for step in range(1, 6):
            clock.now = step * 200
            stats.update("x" * (step * 40), is_submitting=True, is_latest=True, message_id="m1")
            stats.tick()
        assert stats.render() is not None
        assert tokens.render(42) is not None

        preference.set(False)
        assert stats.render() is None
        assert tokens.render(42) is None

        preference.set(True)
        assert stats.render() is not None
        assert tokens.render(42) is not None

    def test_unmounted_displays_stop_listening(self):
        preference = TelemetryPreference(True)
        stats = StreamingStats(preference)
        tokens = MessageTokens(preference)
        stats.mount()
        tokens.mount()
        assert preference.listener_count == 2
        stats.unmount()
        tokens.unmount()
        assert preference.listener_count == 0
        preference.set(False)
        assert tokens.visible is True
