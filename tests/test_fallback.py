"""Tests for ordered strategy fallback."""

import pytest

from bleepforge.fallback import FallbackExhausted, Strategy, StrategyFailure, first_success

STRATEGIES = [Strategy("fast", {"level": 1}), Strategy("small", {"level": 2}), Strategy("tiny", {"level": 3})]


class TestFirstSuccess:
    def test_first_strategy_wins(self):
        tried = []

        def attempt(s):
            tried.append(s.name)
            return s.params["level"]

        assert first_success(STRATEGIES, attempt) == (STRATEGIES[0], 1)
        assert tried == ["fast"]

    def test_falls_through_on_failure(self):
        def attempt(s):
            if s.params["level"] < 3:
                raise StrategyFailure("too-large", f"level {s.params['level']}")
            return "ok"

        strategy, result = first_success(STRATEGIES, attempt)
        assert strategy.name == "tiny"
        assert result == "ok"

    def test_exhausted_collects_reasons(self):
        def attempt(s):
            raise StrategyFailure("encode-failed")

        with pytest.raises(FallbackExhausted) as exc:
            first_success(STRATEGIES, attempt)
        assert [(s.name, f.reason) for s, f in exc.value.failures] == [
            ("fast", "encode-failed"),
            ("small", "encode-failed"),
            ("tiny", "encode-failed"),
        ]
        assert "fast: encode-failed" in str(exc.value)

    def test_other_errors_propagate(self):
        tried = []

        def attempt(s):
            tried.append(s.name)
            raise KeyError("unexpected")

        with pytest.raises(KeyError):
            first_success(STRATEGIES, attempt)
        assert tried == ["fast"]

    def test_empty_list(self):
        with pytest.raises(FallbackExhausted, match="no strategies"):
            first_success([], lambda s: s)


class TestStrategyFailure:
    def test_message(self):
        assert str(StrategyFailure("too-large", "30.00 MB")) == "too-large: 30.00 MB"
        assert str(StrategyFailure("too-large")) == "too-large"
