# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin; that would create circular imports.
"""Typed return-value contracts for issuefinder core and API layers."""

from __future__ import annotations

from issuefinder.types.core import (
    ISOTimestamp,
    IssueDict,
    MilestoneDict,
    ProjectConfig,
)

__all__ = [
    "ISOTimestamp",
    "IssueDict",
    "MilestoneDict",
    "ProjectConfig",
]
