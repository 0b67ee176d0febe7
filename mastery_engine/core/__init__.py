# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core domain logic of the mastery engine.

Subpackages:
- config: Settings and YAML overrides
- curriculum: Concepts, subjects and the curriculum collaborator
- mastery: Bayesian Knowledge Tracing estimator
- diagnostic: Adaptive placement test and skill map
- review: Spaced repetition scheduling, queues and notifications
- orchestration: Session state machine and transition policy
"""
