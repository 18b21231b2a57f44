"""kube-state-logs: periodic structured log records of Kubernetes resource state."""

__version__ = "0.1.0"
