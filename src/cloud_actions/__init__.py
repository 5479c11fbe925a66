"""Batch provisioning and reconciliation of cloud resources."""

__version__ = "0.1.0"
