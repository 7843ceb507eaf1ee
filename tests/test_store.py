"""
Tests for the ban action log store and the location cache.
"""

import sqlite3
from datetime import timedelta

import pytest

from balog.db import store
from balog.db.models import BanActionLog, Location, UNKNOWN_LOCATION
from balog.errors import StoreError


# =====================================================
# Database Initialization Tests
# =====================================================


class TestDatabaseInit:
    """Tests for database initialization"""

    def test_init_creates_tables(self, engine, tmp_path):
        """Database initializes with both tables"""
        conn = sqlite3.connect(tmp_path / "balog.db")
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        conn.close()

        assert {"ban_action_logs", "locations"}.issubset(tables)

    def test_init_creates_indexes(self, engine, tmp_path):
        """Protocol, time and ip scans are indexed"""
        conn = sqlite3.connect(tmp_path / "balog.db")
        indexes = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")
        }
        conn.close()

        assert "ix_ban_action_logs_protocol" in indexes
        assert "ix_ban_action_logs_created_at" in indexes
        assert "ix_ban_action_logs_ip" in indexes
        assert "idx_ban_action_logs_protocol_created_at" in indexes
        assert "ix_locations_country_name" in indexes


# =====================================================
# Ban Action Log Tests
# =====================================================


class TestBanActionLogs:
    def test_save_returns_fresh_ids(self, db):
        first = store.save_ban_action(db, "sshd", "1.2.3.4")
        second = store.save_ban_action(db, "sshd", "1.2.3.4")

        assert first > 0
        assert second > first

    def test_save_leaves_location_empty(self, db):
        ban_action_id = store.save_ban_action(db, "sshd", "1.2.3.4")

        bal = db.get(BanActionLog, ban_action_id)
        assert bal.protocol == "sshd"
        assert bal.ip == "1.2.3.4"
        assert bal.location is None
        assert bal.created_at is not None

    def test_save_with_given_timestamp(self, db, now):
        ban_action_id = store.save_ban_action(db, "sshd", "1.2.3.4", created_at=now - timedelta(days=3))

        bal = db.get(BanActionLog, ban_action_id)
        assert bal.created_at.replace(tzinfo=None) == (now - timedelta(days=3)).replace(tzinfo=None)

    def test_update_location(self, db):
        ban_action_id = store.save_ban_action(db, "sshd", "1.2.3.4")

        assert store.update_ban_action_location(db, ban_action_id, "Korea") is True
        db.expire_all()
        assert db.get(BanActionLog, ban_action_id).location == "Korea"

    def test_update_location_of_missing_log(self, db):
        """Updating a nonexistent ban action reports False instead of raising"""
        assert store.update_ban_action_location(db, 12345, "Korea") is False

    def test_purge_removes_every_log(self, db):
        for ip in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
            store.save_ban_action(db, "sshd", ip)

        assert store.purge_logs(db) == 3
        assert db.query(BanActionLog).count() == 0
        assert store.purge_logs(db) == 0

    def test_purge_keeps_location_cache(self, db):
        store.save_ban_action(db, "sshd", "1.1.1.1")
        store.save_location(db, "1.1.1.1", "Australia")
        store.save_location(db, "2.2.2.2", UNKNOWN_LOCATION)

        store.purge_logs(db)

        assert db.query(Location).count() == 2


# =====================================================
# Location Cache Tests
# =====================================================


class TestLocationCache:
    def test_lookup_on_empty_cache_returns_sentinel(self, db):
        """A cache miss is a zero-id record, not an error"""
        cached = store.lookup_location(db, "1.2.3.4")

        assert cached.id == 0
        assert cached.is_cached is False
        assert db.query(Location).count() == 0

    def test_lookup_hit(self, db):
        location_id = store.save_location(db, "8.8.8.8", "United States")

        cached = store.lookup_location(db, "8.8.8.8")

        assert cached.id == location_id
        assert cached.is_cached is True
        assert cached.country_name == "United States"

    def test_unknown_is_a_cached_value(self, db):
        """'Unknown' means looked up, unlike a missing record"""
        store.save_location(db, "10.0.0.1", UNKNOWN_LOCATION)

        cached = store.lookup_location(db, "10.0.0.1")

        assert cached.is_cached is True
        assert cached.country_name == UNKNOWN_LOCATION

    def test_duplicate_ip_is_rejected(self, db):
        """At most one record per ip"""
        store.save_location(db, "8.8.8.8", "United States")

        with pytest.raises(StoreError):
            store.save_location(db, "8.8.8.8", "Unknown")

        # session is still usable after the failed insert
        assert db.query(Location).filter(Location.ip == "8.8.8.8").count() == 1
        assert store.lookup_location(db, "8.8.8.8").country_name == "United States"

    def test_update_location(self, db):
        store.save_location(db, "1.1.1.1", UNKNOWN_LOCATION)

        assert store.update_location(db, "1.1.1.1", "Australia") is True
        assert store.lookup_location(db, "1.1.1.1").country_name == "Australia"

    def test_update_missing_location(self, db):
        assert store.update_location(db, "1.1.1.1", "Australia") is False

    def test_list_unknown_ips(self, db):
        store.save_location(db, "1.1.1.1", UNKNOWN_LOCATION)
        store.save_location(db, "8.8.8.8", "United States")
        store.save_location(db, "10.0.0.1", UNKNOWN_LOCATION)

        unknowns = store.list_unknown_ips(db)

        assert [loc.ip for loc in unknowns] == ["1.1.1.1", "10.0.0.1"]
        assert all(loc.country_name == UNKNOWN_LOCATION for loc in unknowns)
