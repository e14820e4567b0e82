"""
tests/test_settings_service.py — Settings Store & Seeding
===========================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from orgsync.database.models import AdminLog, Setting
from orgsync.database.seed import DEFAULT_SETTINGS, seed_default_settings
from orgsync.errors import ValidationError
from orgsync.services import settings_service


class TestReads:
    def test_missing_key_returns_default(self, db_session):
        assert settings_service.get_setting_value(db_session, "nope", 7) == 7

    def test_raw_string_fallback(self, db_engine, db_session):
        with Session(db_engine) as session:
            session.add(Setting(key="motto", value_json="not json"))
            session.commit()
        assert settings_service.get_setting_value(db_session, "motto") == "not json"

    def test_get_int_bad_value_falls_back(self, db_engine, db_session):
        settings_service.upsert_setting(db_engine, key="directory.page_size", value="lots")
        assert settings_service.get_int(db_session, "directory.page_size", 10) == 10

    def test_coin_amount_default_and_override(self, db_engine, db_session):
        assert settings_service.coin_amount(db_session, "like") == 10
        settings_service.upsert_setting(db_engine, key="coins.like", value=25)
        assert settings_service.coin_amount(db_session, "like") == 25

    def test_unknown_action_is_zero(self, db_session):
        assert settings_service.coin_amount(db_session, "dance") == 0


class TestUpsert:
    def test_insert_then_update(self, db_engine):
        created = settings_service.upsert_setting(db_engine, key=" leaderboard.top_n ", value=5, category="display")
        assert created == {"key": "leaderboard.top_n", "value": 5, "category": "display", "description": None}
        updated = settings_service.upsert_setting(db_engine, key="leaderboard.top_n", value=20)
        assert updated["value"] == 20
        assert updated["category"] == "display"

    def test_blank_key(self, db_engine):
        with pytest.raises(ValidationError):
            settings_service.upsert_setting(db_engine, key="  ", value=1)

    def test_audit_only_on_change(self, db_engine):
        settings_service.upsert_setting(db_engine, key="coins.view", value=1, actor_id="admin")
        settings_service.upsert_setting(db_engine, key="coins.view", value=1, actor_id="admin")
        settings_service.upsert_setting(db_engine, key="coins.view", value=2, actor_id="admin")
        with Session(db_engine) as session:
            logs = session.scalars(select(AdminLog).order_by(AdminLog.id)).all()
        assert [log.action_type for log in logs] == ["CREATE", "UPDATE"]
        assert logs[1].before_snapshot["value"] == 1
        assert logs[1].after_snapshot["value"] == 2

    def test_no_actor_no_audit(self, db_engine):
        settings_service.upsert_setting(db_engine, key="coins.view", value=3)
        with Session(db_engine) as session:
            assert session.scalars(select(AdminLog)).first() is None

    def test_bulk_upsert(self, db_engine):
        count = settings_service.bulk_upsert(db_engine, [
            {"key": "coins.like", "value": 12, "category": "coins"},
            {"key": "coins.poll", "value": 40, "category": "coins"},
        ], actor_id="admin")
        assert count == 2
        keys = [s["key"] for s in settings_service.get_all_settings(db_engine)]
        assert keys == ["coins.like", "coins.poll"]


class TestSeed:
    def test_seed_is_idempotent(self, db_engine):
        assert seed_default_settings(db_engine) == len(DEFAULT_SETTINGS)
        assert seed_default_settings(db_engine) == 0

    def test_seed_keeps_admin_edits(self, db_engine, db_session):
        settings_service.upsert_setting(db_engine, key="coins.evaluate", value=500, category="coins")
        assert seed_default_settings(db_engine) == len(DEFAULT_SETTINGS) - 1
        assert settings_service.coin_amount(db_session, "evaluate") == 500

    def test_seeded_values_match_defaults(self, db_engine, db_session):
        seed_default_settings(db_engine)
        assert settings_service.get_int(db_session, "roles.cache_ttl_seconds", 0) == 300
        assert settings_service.coin_amount(db_session, "register") == 50
