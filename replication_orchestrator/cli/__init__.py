"""
CLI package for Replication Orchestrator

Provides the command-line interface for running replications.
"""

from .main import main, cli

__all__ = ["main", "cli"]
