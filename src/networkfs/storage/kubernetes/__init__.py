"""Kubernetes storage layers."""
