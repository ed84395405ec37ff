"""Provisioning helpers for Rancher-managed clusters: K3k clusters, CAPI machines, node pool scaling and Kubernetes versions."""

__version__ = "0.1.0"