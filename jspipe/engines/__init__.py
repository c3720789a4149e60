"""Collaborator interfaces for external tools, plus subprocess-backed adapters."""
