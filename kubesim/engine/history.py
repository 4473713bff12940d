"""Bounded ring of per-tick cluster utilisation samples."""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass

from kubesim.models.resources import PodPhase
from kubesim.models.stats import ClusterStats


@dataclass(frozen=True)
class MetricsSample:
    tick: int
    sim_time: float
    cpu_percent: float
    memory_percent: float
    pods_running: int
    nodes_ready: int


@dataclass(frozen=True)
class SeriesSummary:
    current: float
    avg: float
    max: float
    min: float


class MetricsHistory:
    def __init__(self, size: int = 60) -> None:
        self._samples: deque[MetricsSample] = deque(maxlen=max(1, size))

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, tick: int, sim_time: float, stats: ClusterStats) -> MetricsSample:
        sample = MetricsSample(
            tick=tick,
            sim_time=sim_time,
            cpu_percent=stats.cpu.percent,
            memory_percent=stats.memory.percent,
            pods_running=stats.pods_by_phase.get(PodPhase.RUNNING.value, 0),
            nodes_ready=stats.nodes_ready,
        )
        self._samples.append(sample)
        return sample

    def samples(self, count: int | None = None) -> list[MetricsSample]:
        samples = list(self._samples)
        return samples[-count:] if count else samples

    def summary(self) -> dict[str, object] | None:
        """Current/avg/max/min per series, or None before the first sample."""
        if not self._samples:
            return None
        return {
            "cpu": asdict(_summarise([s.cpu_percent for s in self._samples])),
            "memory": asdict(_summarise([s.memory_percent for s in self._samples])),
            "podsRunning": asdict(_summarise([float(s.pods_running) for s in self._samples])),
            "tick": self._samples[-1].tick,
            "historyLength": len(self._samples),
        }

    def clear(self) -> None:
        self._samples.clear()


def _summarise(values: list[float]) -> SeriesSummary:
    return SeriesSummary(
        current=values[-1],
        avg=round(sum(values) / len(values), 1),
        max=max(values),
        min=min(values),
    )
