"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubesim.models.config import (
    APIConfig,
    AutoscalerConfig,
    ChaosConfig,
    EngineConfig,
    IncidentConfig,
    KubeSimConfig,
    LogConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBESIM_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None, max_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_optional_int(key: str) -> int | None:
    raw = _env(key, "").strip()
    return int(raw) if raw else None


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_rate(key: str, value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"Invalid rate for KUBESIM_{key}: {value}. Must be within [0, 1]")
    return value


def load_config() -> KubeSimConfig:
    """Load configuration from KUBESIM_* environment variables."""
    return KubeSimConfig(
        seed=_env_optional_int("SEED"),
        bootstrap_nodes=_env_int("BOOTSTRAP_NODES", 3, min_val=0, max_val=50),
        engine=EngineConfig(
            tick_seconds=_env_float("TICK_SECONDS", 0.05, min_val=0.01, max_val=1.0),
            max_frame_seconds=_env_float("MAX_FRAME_SECONDS", 0.1, min_val=0.01, max_val=5.0),
            hpa_interval_ticks=_env_int("HPA_INTERVAL_TICKS", 15, min_val=1),
            probe_interval_ticks=_env_int("PROBE_INTERVAL_TICKS", 5, min_val=1),
            cron_interval_ticks=_env_int("CRON_INTERVAL_TICKS", 10, min_val=1),
            metrics_history=_env_int("METRICS_HISTORY", 60, min_val=1, max_val=3600),
            random_failure_rate=_validate_rate("RANDOM_FAILURE_RATE", _env_float("RANDOM_FAILURE_RATE", 0.002)),
        ),
        autoscaler=AutoscalerConfig(
            scale_up_cooldown=_env_float("HPA_SCALE_UP_COOLDOWN", 30.0, min_val=0.0),
            scale_down_cooldown=_env_float("HPA_SCALE_DOWN_COOLDOWN", 300.0, min_val=0.0),
        ),
        chaos=ChaosConfig(
            pod_kill_rate=_validate_rate("CHAOS_POD_KILL_RATE", _env_float("CHAOS_POD_KILL_RATE", 0.0)),
            node_fail_rate=_validate_rate("CHAOS_NODE_FAIL_RATE", _env_float("CHAOS_NODE_FAIL_RATE", 0.0)),
            cpu_stress=_env_float("CHAOS_CPU_STRESS", 0.0, min_val=0.0),
            memory_stress=_env_float("CHAOS_MEMORY_STRESS", 0.0, min_val=0.0),
        ),
        incidents=IncidentConfig(
            interval_seconds=_env_float("INCIDENT_INTERVAL", 1.0, min_val=0.1, max_val=60.0),
            random_spawning=_env_bool("INCIDENT_RANDOM", False),
            combo_window_seconds=_env_float("COMBO_WINDOW", 10.0, min_val=0.0),
            max_cascade_depth=_env_int("MAX_CASCADE_DEPTH", 3, min_val=0, max_val=10),
        ),
        api=APIConfig(
            host=_env("API_HOST", "127.0.0.1"),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
