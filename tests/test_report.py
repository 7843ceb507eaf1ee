"""
Tests for report aggregation over the two lookback windows.
"""

import json
from datetime import timedelta

from balog.analytics.render import render_json
from balog.analytics.report import generate_report
from balog.db import store


def _save(db, protocol, ip, created_at, location=None):
    ban_action_id = store.save_ban_action(db, protocol, ip, created_at=created_at)
    if location is not None:
        store.update_ban_action_location(db, ban_action_id, location)
    return ban_action_id


class TestWindows:
    def test_scenario_same_ip_three_times(self, db, now):
        """Events 1, 10 and 40 days old: 1 in the 7 day window, 2 in the 30 day window"""
        for days in (1, 10, 40):
            _save(db, "ssh", "8.8.8.8", now - timedelta(days=days))

        report = generate_report(db, 0, 7, 30, now=now)

        assert report.last_days_report1.total_count == 1
        assert report.last_days_report2.total_count == 2

    def test_lower_bound_is_inclusive(self, db, now):
        _save(db, "ssh", "1.1.1.1", now - timedelta(days=7))
        _save(db, "ssh", "1.1.1.2", now - timedelta(days=7, seconds=1))

        report = generate_report(db, 0, 7, 30, now=now)

        assert report.last_days_report1.total_count == 1
        assert report.last_days_report2.total_count == 2

    def test_windows_are_independent(self, db, now):
        _save(db, "ssh", "1.1.1.1", now - timedelta(days=2), "Korea")
        _save(db, "ftp", "2.2.2.2", now - timedelta(days=20), "Japan")

        report = generate_report(db, 0, 7, 30, now=now)

        assert dict(report.last_days_report1.protocol_counts) == {"ssh": 1}
        assert dict(report.last_days_report1.country_counts) == {"Korea": 1}
        assert dict(report.last_days_report2.protocol_counts) == {"ssh": 1, "ftp": 1}
        assert dict(report.last_days_report2.country_counts) == {"Korea": 1, "Japan": 1}

    def test_from_to_strings(self, db, now):
        report = generate_report(db, 0, 7, 30, now=now)

        assert report.last_days_report1.from_to == "2026-10-11 12:00:00 ~ 2026-10-18 12:00:00"
        assert report.last_days_report2.from_to == "2026-09-18 12:00:00 ~ 2026-10-18 12:00:00"
        assert report.last_days_report1.days == 7
        assert report.last_days_report2.days == 30

    def test_negative_offset_moves_reference(self, db, now):
        report = generate_report(db, -7, 7, 30, now=now)

        assert report.reference == now - timedelta(days=7)
        assert report.last_days_report1.from_to == "2026-10-04 12:00:00 ~ 2026-10-11 12:00:00"

    def test_negative_offset_does_not_cap_upper_bound(self, db, now):
        """
        Only the start of a window follows the offset: events newer than the
        shifted reference datetime are still counted.
        """
        _save(db, "ssh", "1.1.1.1", now - timedelta(days=1))
        _save(db, "ssh", "2.2.2.2", now - timedelta(days=10))
        _save(db, "ssh", "3.3.3.3", now - timedelta(days=20))

        report = generate_report(db, -7, 7, 30, now=now)

        # window 1 starts at now-14d, but the 1 day old event is included too
        assert report.last_days_report1.total_count == 2
        assert report.last_days_report2.total_count == 3


class TestCounts:
    def test_counts_keep_first_seen_order(self, db, now):
        _save(db, "sshd", "1.1.1.1", now - timedelta(hours=5), "Korea")
        _save(db, "postfix", "2.2.2.2", now - timedelta(hours=4), "Japan")
        _save(db, "postfix", "3.3.3.3", now - timedelta(hours=3), "Japan")
        _save(db, "postfix", "4.4.4.4", now - timedelta(hours=2), "Brazil")

        sub = generate_report(db, 0, 7, 30, now=now).last_days_report1

        assert list(sub.protocol_counts.items()) == [("sshd", 1), ("postfix", 3)]
        assert list(sub.country_counts.items()) == [("Korea", 1), ("Japan", 2), ("Brazil", 1)]

    def test_unresolved_locations_count_towards_total_only(self, db, now):
        _save(db, "sshd", "1.1.1.1", now - timedelta(hours=1), "Korea")
        _save(db, "sshd", "2.2.2.2", now - timedelta(hours=1))

        sub = generate_report(db, 0, 7, 30, now=now).last_days_report1

        assert sub.total_count == 2
        assert dict(sub.protocol_counts) == {"sshd": 2}
        assert dict(sub.country_counts) == {"Korea": 1}

    def test_empty_store(self, db, now):
        report = generate_report(db, 0, 7, 30, now=now)

        for sub in report.sub_reports:
            assert sub.total_count == 0
            assert len(sub.protocol_counts) == 0
            assert len(sub.country_counts) == 0

    def test_generate_is_idempotent(self, db, now):
        for i, days in enumerate((1, 3, 9, 15, 29)):
            _save(db, ("sshd", "ftp")[i % 2], f"10.0.0.{i}", now - timedelta(days=days), ("Korea", "Peru")[i % 2])

        first = generate_report(db, 0, 7, 30, now=now)
        second = generate_report(db, 0, 7, 30, now=now)

        assert first == second
        for a, b in zip(first.sub_reports, second.sub_reports):
            assert list(a.protocol_counts.items()) == list(b.protocol_counts.items())
            assert list(a.country_counts.items()) == list(b.country_counts.items())

    def test_json_keeps_counts(self, db, now):
        _save(db, "sshd", "1.1.1.1", now - timedelta(days=1), "Korea")
        _save(db, "ftp", "2.2.2.2", now - timedelta(days=2), "Peru")
        _save(db, "ftp", "3.3.3.3", now - timedelta(days=12))

        report = generate_report(db, 0, 7, 30, now=now)
        decoded = json.loads(render_json(report))

        for key, sub in (("last_days_report1", report.last_days_report1), ("last_days_report2", report.last_days_report2)):
            assert decoded[key]["total_count"] == sub.total_count
            assert decoded[key]["protocol_counts"] == dict(sub.protocol_counts)
            assert decoded[key]["country_counts"] == dict(sub.country_counts)
