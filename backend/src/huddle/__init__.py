"""Realtime fan-out and client reconciliation for the Huddle chat backend."""

__version__ = "0.1.0"
