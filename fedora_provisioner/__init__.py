"""Fedora workstation provisioner.

Core design goals:
- Ordered, individually skippable steps
- Idempotent steps (safe to re-run)
- Per-step failure isolation
- Machine-readable run report
- Centralized logging
"""

__all__ = []
