"""Observability: metrics collection, LLM cost accounting and call logging."""

import time
from contextlib import contextmanager
from typing import Any

import structlog

logger = structlog.get_logger().bind(source="observability")

# USD per token (Claude Sonnet list pricing)
PRICING = {
    "input": 3 / 1_000_000,
    "output": 15 / 1_000_000,
    "cache_write": 3.75 / 1_000_000,
    "cache_read": 0.30 / 1_000_000,
}


class Metrics:
    """Simple dict-based metrics collector for counters and timers."""

    def __init__(self):
        self._counters: dict[str, int] = {}
        self._timers: dict[str, list[float]] = {}

    def counter(self, name: str, value: int = 1):
        """Increment a counter by the given value."""
        self._counters[name] = self._counters.get(name, 0) + value

    def get(self, name: str) -> int:
        return self._counters.get(name, 0)

    @contextmanager
    def timer(self, name: str):
        """Context manager to time an operation and store duration."""
        start = time.time()
        try:
            yield
        finally:
            duration = time.time() - start
            if name not in self._timers:
                self._timers[name] = []
            self._timers[name].append(duration)

    def summary(self) -> dict[str, Any]:
        """Return a summary of all collected metrics."""
        timer_summary = {}
        for name, durations in self._timers.items():
            if durations:
                timer_summary[name] = {
                    "count": len(durations),
                    "total": sum(durations),
                    "avg": sum(durations) / len(durations),
                    "min": min(durations),
                    "max": max(durations),
                }
            else:
                timer_summary[name] = {"count": 0}

        return {
            "counters": dict(self._counters),
            "timers": timer_summary,
        }

    def reset(self):
        """Clear all metrics."""
        self._counters.clear()
        self._timers.clear()


# Module-level singleton
metrics = Metrics()


def calculate_cost(usage) -> dict[str, float]:
    """Dollar cost breakdown for one generation call.

    Args:
        usage: object with input_tokens, output_tokens, cache_creation_tokens
               and cache_read_tokens attributes (llm.TokenUsage)
    """
    input_cost = usage.input_tokens * PRICING["input"]
    output_cost = usage.output_tokens * PRICING["output"]
    cache_write_cost = usage.cache_creation_tokens * PRICING["cache_write"]
    cache_read_cost = usage.cache_read_tokens * PRICING["cache_read"]
    return {
        "input_cost": input_cost,
        "output_cost": output_cost,
        "cache_write_cost": cache_write_cost,
        "cache_read_cost": cache_read_cost,
        "total_cost": input_cost + output_cost + cache_write_cost + cache_read_cost,
    }


def log_llm_call(endpoint: str, usage, latency_ms: int, session_token: str | None = None):
    """Record token usage and cost for a generation call."""
    cost = calculate_cost(usage)
    metrics.counter("llm.calls")
    metrics.counter("llm.input_tokens", usage.input_tokens)
    metrics.counter("llm.output_tokens", usage.output_tokens)
    metrics.counter("llm.cache_read_tokens", usage.cache_read_tokens)
    logger.info(
        "llm.call",
        endpoint=endpoint,
        session_token=session_token,
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_creation_tokens=usage.cache_creation_tokens,
        cache_read_tokens=usage.cache_read_tokens,
        cost=round(cost["total_cost"], 6),
        latency_ms=latency_ms,
    )
    return cost


def log_run_summary():
    """Log the current metrics summary via structlog."""
    summary = metrics.summary()
    logger.info("run_summary", **summary)
