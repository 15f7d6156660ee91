"""Ordered strategy lists: try each alternative until one succeeds."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Strategy:
    name: str
    params: dict[str, Any] = field(default_factory=dict)


class StrategyFailure(Exception):
    """Raised by an attempt to reject its strategy with a typed reason."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class FallbackExhausted(Exception):
    def __init__(self, failures: list[tuple[Strategy, StrategyFailure]]):
        self.failures = failures
        summary = "; ".join(f"{s.name}: {f}" for s, f in failures) or "no strategies"
        super().__init__(f"All strategies failed ({summary})")


def first_success(
    strategies: list[Strategy],
    attempt: Callable[[Strategy], T],
) -> tuple[Strategy, T]:
    """Run *attempt* for each strategy in order; return the first success.

    Only ``StrategyFailure`` moves on to the next strategy; any other
    exception propagates immediately.
    """
    failures: list[tuple[Strategy, StrategyFailure]] = []
    for strategy in strategies:
        try:
            result = attempt(strategy)
        except StrategyFailure as failure:
            logger.info("Strategy %s failed: %s", strategy.name, failure)
            failures.append((strategy, failure))
            continue
        return strategy, result
    raise FallbackExhausted(failures)
