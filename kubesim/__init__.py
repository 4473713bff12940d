"""KubeSim: a deterministic container-orchestration cluster simulation kernel."""

__version__ = "0.1.0"
