# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Adaptive mastery and session orchestration engine.

Estimates what a learner knows (Bayesian Knowledge Tracing), places new
learners with an adaptive diagnostic, drives live tutoring sessions through
a guarded state machine and schedules reviews on a forgetting curve.
"""

__version__ = "0.1.0"
