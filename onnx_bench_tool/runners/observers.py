"""Run observation: sampling state, timing observer and reporters.

The execution loop mutates :class:`SampleRateState` right before every run;
the :class:`PerfObserver` reads it when the run finishes to decide where the
sample belongs. Both live on an :class:`ObserverConfig` that is handed to the
loop explicitly.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

import numpy as np

LOGGER = logging.getLogger(__name__)


class SamplingProfile(str, enum.Enum):
    COARSE = "coarse"  # aggregate net timing only
    FINE = "fine"  # per-operator timing


@dataclass
class SampleRateState:
    warmup: bool = False
    per_operator: bool = False
    measured_runs: int = 0
    skip_iters: int = 0

    def init_baseline(self, run_individual: bool, warmup: int) -> None:
        self.warmup = True
        self.per_operator = bool(run_individual)
        self.measured_runs = 0
        self.skip_iters = int(warmup)

    def set_profile(self, profile: SamplingProfile) -> None:
        self.warmup = False
        self.per_operator = profile is SamplingProfile.FINE
        if profile is SamplingProfile.COARSE:
            self.measured_runs += 1


@dataclass
class TimingSummary:
    net_ms: list[float] = field(default_factory=list)
    warmup_ms: list[float] = field(default_factory=list)
    operator_ms: dict[str, list[float]] = field(default_factory=dict)

    def net_stats(self) -> dict[str, Any]:
        runs = self.net_ms
        return {
            "measured_runs": list(runs),
            "measured_mean": float(np.mean(runs)) if runs else None,
            "measured_std": float(np.std(runs, ddof=0)) if runs else None,
            "measured_min": float(np.min(runs)) if runs else None,
            "measured_max": float(np.max(runs)) if runs else None,
            "warmup_total": float(np.sum(self.warmup_ms)) if self.warmup_ms else 0.0,
        }

    def operator_means(self) -> dict[str, float]:
        return {k: float(np.mean(v)) for k, v in self.operator_ms.items() if v}


class Reporter(Protocol):
    def report(self, summary: TimingSummary) -> None: ...


class LogReporter:
    """Print the timing summary through the module logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or LOGGER

    def report(self, summary: TimingSummary) -> None:
        stats = summary.net_stats()
        if stats["measured_mean"] is not None:
            self.logger.info(
                "Main run: %d iters, mean %.3f ms, std %.3f ms, min %.3f ms, max %.3f ms",
                len(summary.net_ms),
                stats["measured_mean"],
                stats["measured_std"],
                stats["measured_min"],
                stats["measured_max"],
            )
        ops = summary.operator_means()
        for name, ms in sorted(ops.items(), key=lambda kv: -kv[1]):
            self.logger.info("  op %-40s %.4f ms", name, ms)


class CollectingReporter:
    """Keep reported summaries in memory (useful for embedding and tests)."""

    def __init__(self) -> None:
        self.summaries: list[TimingSummary] = []

    def report(self, summary: TimingSummary) -> None:
        self.summaries.append(summary)


class PerfObserver:
    """Time each run and file the sample according to the sampling state."""

    def __init__(self, state: SampleRateState) -> None:
        self.state = state
        self.summary = TimingSummary()
        self._t0: Optional[float] = None

    def on_start(self) -> None:
        self._t0 = time.perf_counter()

    def on_stop(self) -> None:
        if self._t0 is None:
            return
        ms = (time.perf_counter() - self._t0) * 1000.0
        self._t0 = None
        if self.state.warmup:
            self.summary.warmup_ms.append(ms)
        elif not self.state.per_operator:
            self.summary.net_ms.append(ms)

    def add_operator_times(self, times: Mapping[str, list[float]]) -> None:
        for name, values in times.items():
            self.summary.operator_ms.setdefault(name, []).extend(float(v) for v in values)


class ObserverConfig:
    """Observer wiring for one execution loop."""

    def __init__(self, reporter: Optional[Reporter] = None) -> None:
        self.state = SampleRateState()
        self.reporter: Reporter = reporter if reporter is not None else LogReporter()

    def make_observer(self) -> PerfObserver:
        return PerfObserver(self.state)
