"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class EngineConfig:
    """Control-loop engine configuration.

    ``tick_seconds`` is the fixed simulated step; the cadence fields count
    ticks, matching how the engine schedules its slower passes.
    """

    tick_seconds: float = 0.05
    max_frame_seconds: float = 0.1
    max_time_scale: float = 10.0
    hpa_interval_ticks: int = 15
    probe_interval_ticks: int = 5
    cron_interval_ticks: int = 10
    metrics_history: int = 60
    random_failure_rate: float = 0.002
    backoff_base_seconds: float = 10.0
    backoff_max_seconds: float = 300.0
    probe_threshold_ratio: float = 0.95


@dataclass
class AutoscalerConfig:
    """HorizontalPodAutoscaler cooldowns (simulated seconds)."""

    scale_up_cooldown: float = 30.0
    scale_down_cooldown: float = 300.0


@dataclass
class ChaosConfig:
    """Fault injection rates; all zero disables chaos entirely."""

    pod_kill_rate: float = 0.0
    node_fail_rate: float = 0.0
    cpu_stress: float = 0.0
    memory_stress: float = 0.0

    @property
    def enabled(self) -> bool:
        return any((self.pod_kill_rate, self.node_fail_rate, self.cpu_stress, self.memory_stress))


@dataclass
class IncidentConfig:
    """Incident engine configuration."""

    interval_seconds: float = 1.0
    random_spawning: bool = False
    combo_window_seconds: float = 10.0
    fast_resolve_seconds: float = 30.0
    max_cascade_depth: int = 3
    max_difficulty: int = 10


@dataclass
class APIConfig:
    """REST API configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeSimConfig:
    """Top-level simulation configuration."""

    seed: int | None = None
    bootstrap_nodes: int = 3
    engine: EngineConfig = field(default_factory=EngineConfig)
    autoscaler: AutoscalerConfig = field(default_factory=AutoscalerConfig)
    chaos: ChaosConfig = field(default_factory=ChaosConfig)
    incidents: IncidentConfig = field(default_factory=IncidentConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
