"""Logging, metrics and record output for kube-state-logs."""
