"""Initial cluster contents for a fresh simulation.

``bootstrap_cluster`` adds worker nodes and, optionally, a small demo
workload (a web Deployment behind a Service plus a CoreDNS Deployment in
kube-system) so a new simulation has something to reconcile.
"""

from __future__ import annotations

from kubesim.models.resources import Kind
from kubesim.observability.logging import get_logger
from kubesim.store import ClusterStore

_logger = get_logger("bootstrap")

NODE_ROLE_LABEL = "node-role.kubernetes.io/worker"
HOSTNAME_LABEL = "kubernetes.io/hostname"


def _workload_spec(app: str, replicas: int, image: str, requests: dict, limits: dict) -> dict:
    return {
        "replicas": replicas,
        "selector": {"matchLabels": {"app": app}},
        "template": {
            "metadata": {"labels": {"app": app}},
            "spec": {
                "containers": [
                    {
                        "name": app,
                        "image": image,
                        "resources": {"requests": requests, "limits": limits},
                        "readinessProbe": {"periodSeconds": 5},
                    }
                ]
            },
        },
    }


def bootstrap_cluster(store: ClusterStore, node_count: int = 3, workloads: bool = True) -> int:
    """Populate *store*; returns the number of resources added."""
    before = len(store)
    with store.batch():
        for index in range(1, node_count + 1):
            name = f"node-{index}"
            store.create(
                Kind.NODE,
                name,
                spec={"capacity": {"cpu": "4", "memory": "8Gi"}},
                labels={HOSTNAME_LABEL: name, NODE_ROLE_LABEL: "true"},
            )

        if workloads:
            store.create(
                Kind.DEPLOYMENT,
                "coredns",
                "kube-system",
                spec=_workload_spec(
                    "coredns",
                    2,
                    "coredns/coredns:1.11.1",
                    requests={"cpu": "100m", "memory": "70Mi"},
                    limits={"cpu": "200m", "memory": "170Mi"},
                ),
                labels={"k8s-app": "kube-dns"},
            )
            store.create(
                Kind.SERVICE,
                "kube-dns",
                "kube-system",
                spec={"selector": {"app": "coredns"}, "ports": [{"port": 53, "targetPort": 53, "protocol": "UDP"}]},
            )
            store.create(
                Kind.DEPLOYMENT,
                "web",
                spec=_workload_spec(
                    "web",
                    3,
                    "nginx:1.27",
                    requests={"cpu": "250m", "memory": "256Mi"},
                    limits={"cpu": "500m", "memory": "512Mi"},
                ),
                labels={"app": "web"},
            )
            store.create(
                Kind.SERVICE,
                "web",
                spec={"selector": {"app": "web"}, "type": "LoadBalancer", "ports": [{"port": 80, "targetPort": 8080}]},
            )

    added = len(store) - before
    _logger.info("cluster_bootstrapped", nodes=node_count, workloads=workloads, resources=added)
    return added
