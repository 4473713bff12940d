"""Shared fixtures for KubeSim integration tests.

Integration tests drive a full ``SimulationApp`` (store, control loops,
incident engine, command queue) through simulated time, starting from the
bootstrapped demo cluster: three nodes, a ``web`` Deployment behind a
LoadBalancer Service and CoreDNS in kube-system.
"""

from __future__ import annotations

import pytest

from kubesim.app import SimulationApp
from kubesim.models.resources import Kind, PodPhase, Resource

from tests.conftest import SEED, make_config


def make_app(seed: int = SEED) -> SimulationApp:
    return SimulationApp(make_config(seed=seed), bootstrap=True)


def app_pods(app: SimulationApp, prefix: str = "", *, include_deleting: bool = False) -> list[Resource]:
    return [
        pod
        for pod in app.store.by_kind(Kind.POD)
        if pod.name.startswith(prefix) and (include_deleting or not pod.is_deleting)
    ]


def running(pods: list[Resource]) -> list[Resource]:
    return [pod for pod in pods if pod.phase == PodPhase.RUNNING]


@pytest.fixture
def app() -> SimulationApp:
    return make_app()


@pytest.fixture
def converged_app(app: SimulationApp) -> SimulationApp:
    """The demo cluster after five simulated seconds."""
    app.run_for(5.0)
    return app
