"""
editgate — quality gate for AI-proposed code edits

File: src/editgate/__init__.py
Last updated: 2026-10-19

Purpose
- Package root. Defines package-level metadata and import boundaries.

What should be included in this file
- Version export and a small public API surface.
- No heavy submodule imports at import time; import ``editgate.pipeline``,
  ``editgate.plans`` and ``editgate.checkpoints`` directly.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
