# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adaptive diagnostic placement."""

from mastery_engine.core.diagnostic.engine import DiagnosticEngine, placement_summary
from mastery_engine.core.diagnostic.models import (
    DiagnosticResponse,
    DiagnosticSession,
    PlacementConfidence,
    PlacementResult,
    StopReason,
)
from mastery_engine.core.diagnostic.skill_map import (
    SkillMap,
    SkillMapEntry,
    SkillStatus,
    build_skill_map,
    estimate_hours,
    seed_beliefs,
)

__all__ = [
    "DiagnosticEngine",
    "DiagnosticResponse",
    "DiagnosticSession",
    "PlacementConfidence",
    "PlacementResult",
    "SkillMap",
    "SkillMapEntry",
    "SkillStatus",
    "StopReason",
    "build_skill_map",
    "estimate_hours",
    "placement_summary",
    "seed_beliefs",
]
