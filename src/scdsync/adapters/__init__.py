"""Adapters connecting the reconciliation core to concrete stores and inputs."""
