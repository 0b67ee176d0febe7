# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for engine settings and YAML overrides."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from mastery_engine.core.config.settings import (
    BKTSettings,
    DiagnosticSettings,
    RedisSettings,
    ReviewSettings,
    SessionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
    load_settings_from_yaml,
)
from mastery_engine.core.config.yaml_loader import YAMLLoadError, deep_merge, load_yaml


@pytest.mark.unit
class TestSubsettings:
    """Tests for the prefixed subsettings."""

    def test_bkt_defaults(self) -> None:
        """Knowledge tracing defaults match the documented parameters."""
        settings = BKTSettings()

        assert settings.p_init == 0.30
        assert settings.p_transit == 0.10
        assert settings.p_slip == 0.10
        assert settings.p_guess == 0.25

    def test_bkt_loads_from_environment(self) -> None:
        """BKT_ variables override the defaults."""
        with patch.dict(os.environ, {"BKT_P_INIT": "0.2"}, clear=False):
            settings = BKTSettings()

        assert settings.p_init == 0.2

    def test_bkt_rejects_out_of_range(self) -> None:
        """Probabilities outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            BKTSettings(p_slip=1.5)

    def test_diagnostic_defaults(self) -> None:
        """The diagnostic stops at 20 questions or 0.85 confidence."""
        settings = DiagnosticSettings()

        assert settings.max_questions == 20
        assert settings.min_questions == 3
        assert settings.confidence_target == 0.85
        assert settings.low_confidence_cap == 0.4

    def test_review_and_session_defaults(self) -> None:
        """Review and session thresholds have their documented defaults."""
        review = ReviewSettings()
        session = SessionSettings()

        assert review.max_queue_size == 10
        assert review.refresher_slots == 3
        assert review.refresher_stale_days == 14
        assert review.notification_expiry_days == 7
        assert session.struggle_threshold == 3
        assert session.negative_emotion_signals == 2
        assert session.max_duration_seconds == 7200

    def test_session_loads_from_environment(self) -> None:
        """SESSION_ variables override the defaults."""
        with patch.dict(os.environ, {"SESSION_STRUGGLE_THRESHOLD": "4"}, clear=False):
            settings = SessionSettings()

        assert settings.struggle_threshold == 4


@pytest.mark.unit
class TestRedisSettings:
    """Tests for RedisSettings."""

    def test_url_without_password(self) -> None:
        """The URL omits credentials when no password is set."""
        settings = RedisSettings(host="cache", port=6380, database=2)

        assert settings.url == "redis://cache:6380/2"

    def test_url_with_password(self) -> None:
        """The password is embedded in the URL."""
        settings = RedisSettings(password="secret")  # type: ignore[arg-type]

        assert settings.url == "redis://:secret@localhost:6379/0"


@pytest.mark.unit
class TestSettings:
    """Tests for the aggregate Settings."""

    def test_defaults(self) -> None:
        """Settings aggregate every subsettings group."""
        settings = Settings()

        assert settings.is_development
        assert not settings.is_production
        assert settings.bkt.p_init == 0.30
        assert settings.review.max_queue_size == 10

    def test_refresher_slots_must_fit(self) -> None:
        """Refresher slots must leave room for due reviews."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(review=ReviewSettings(max_queue_size=3, refresher_slots=3))

        assert "REVIEW_REFRESHER_SLOTS" in str(exc_info.value)

    def test_slip_and_guess_must_be_identifiable(self) -> None:
        """Slip plus guess of one or more is rejected."""
        with pytest.raises(ValidationError):
            Settings(bkt=BKTSettings(p_slip=0.5, p_guess=0.5))

    def test_get_settings_is_cached(self) -> None:
        """get_settings() returns a singleton until the cache is cleared."""
        clear_settings_cache()
        first = get_settings()

        assert get_settings() is first

        clear_settings_cache()
        assert get_settings() is not first


@pytest.mark.unit
class TestYamlOverrides:
    """Tests for YAML loading and settings overrides."""

    def test_load_yaml(self, tmp_path: Path) -> None:
        """A YAML mapping is returned as a dictionary."""
        path = tmp_path / "engine.yaml"
        path.write_text("bkt:\n  p_init: 0.2\n")

        assert load_yaml(path) == {"bkt": {"p_init": 0.2}}

    def test_empty_yaml(self, tmp_path: Path) -> None:
        """Empty files load as an empty mapping."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml(path) == {}

    def test_list_root_is_rejected(self, tmp_path: Path) -> None:
        """The root of an override file must be a mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(path)

        assert "YAML root must be a mapping" in str(exc_info.value)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise YAMLLoadError."""
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path / "missing.yaml")

        assert "File does not exist" in str(exc_info.value)

    def test_invalid_syntax(self, tmp_path: Path) -> None:
        """Malformed YAML raises YAMLLoadError."""
        path = tmp_path / "broken.yaml"
        path.write_text("key: [unclosed\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(path)

        assert "Invalid YAML syntax" in str(exc_info.value)

    def test_deep_merge(self) -> None:
        """Nested mappings merge key by key without mutating inputs."""
        base = {"review": {"max_queue_size": 10, "refresher_slots": 3}, "debug": True}
        override = {"review": {"refresher_slots": 2}, "debug": False}

        merged = deep_merge(base, override)

        assert merged == {"review": {"max_queue_size": 10, "refresher_slots": 2}, "debug": False}
        assert base["review"]["refresher_slots"] == 3

    def test_load_settings_from_yaml(self, tmp_path: Path) -> None:
        """YAML overrides replace only the keys they name."""
        path = tmp_path / "engine.yaml"
        path.write_text(
            "environment: production\n"
            "bkt:\n  p_init: 0.2\n"
            "session:\n  struggle_threshold: 4\n"
        )

        settings = load_settings_from_yaml(path)

        assert settings.is_production
        assert settings.bkt.p_init == 0.2
        assert settings.bkt.p_guess == 0.25
        assert settings.session.struggle_threshold == 4
        assert settings.session.negative_emotion_signals == 2

    def test_invalid_override_is_rejected(self, tmp_path: Path) -> None:
        """Override values are validated like environment values."""
        path = tmp_path / "engine.yaml"
        path.write_text("bkt:\n  p_init: 2.0\n")

        with pytest.raises(ValidationError):
            load_settings_from_yaml(path)
