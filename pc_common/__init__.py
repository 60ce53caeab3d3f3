"""Shared helpers for packer-converge."""

from pc_common.api import PCError, configure_logging, error_to_payload

__all__ = ["configure_logging", "PCError", "error_to_payload"]
