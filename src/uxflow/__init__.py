"""uxflow — agent-driven UX/UI design workflows."""

__version__ = "0.1.0"
