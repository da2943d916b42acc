"""
IRDesk Platform - 工具函数测试
"""

from datetime import datetime, timedelta, timezone

from backend.app.services.investor_service import format_change, previous_quarter, quarter_label
from backend.app.utils.datetime_utils import ensure_utc, month_start, to_iso
from backend.app.utils.investor_diff import create_snapshot_diff, format_diff_message


def test_quarter_helpers():
    assert quarter_label(2024, 3) == "3Q24"
    assert quarter_label(2025, 1) == "1Q25"
    assert previous_quarter(2024, 1) == (2023, 4)
    assert previous_quarter(2024, 3) == (2024, 2)


def test_format_change():
    assert format_change(110, 100) == "지난 분기 대비 +10%"
    assert format_change(90, 100) == "지난 분기 대비 -10%"
    assert format_change(100, 100) == "지난 분기 대비 +0%"
    assert format_change(None, 100) == "지난 분기 대비 N/A"
    assert format_change(100, 0) == "지난 분기 대비 N/A"


def test_snapshot_diff_only_reports_changes():
    old = {"sOverO": 1, "ord": 100, "turnover": "LOW"}
    new = {"sOverO": 2, "ord": 100, "turnover": "LOW", "styleNote": "장기 보유"}
    diff = create_snapshot_diff(old, new)
    assert diff == {"sOverO": [1, 2], "styleNote": [None, "장기 보유"]}


def test_snapshot_diff_against_missing_snapshot():
    diff = create_snapshot_diff(None, {"ord": 5})
    assert diff == {"ord": [None, 5]}


def test_snapshot_diff_compares_activity_as_instants():
    utc_time = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    kst_time = utc_time.astimezone(timezone(timedelta(hours=9)))
    assert create_snapshot_diff({"lastActivityAt": utc_time}, {"lastActivityAt": kst_time}) == {}

    later = utc_time + timedelta(days=1)
    diff = create_snapshot_diff({"lastActivityAt": utc_time}, {"lastActivityAt": later})
    assert diff == {"lastActivityAt": ["2024-05-01T09:00:00.000Z", "2024-05-02T09:00:00.000Z"]}


def test_format_diff_message():
    message = format_diff_message({"sOverO": [1, 2], "styleNote": [None, "메모"]})
    assert message == "S/O: 1 → 2, 스타일 메모: (없음) → 메모"


def test_datetime_helpers():
    naive = datetime(2024, 1, 1, 12, 30)
    assert ensure_utc(naive).tzinfo == timezone.utc
    assert to_iso(naive) == "2024-01-01T12:30:00.000Z"
    assert to_iso(None) is None
    assert month_start(datetime(2024, 2, 17, 8, tzinfo=timezone.utc)) == datetime(2024, 2, 1, tzinfo=timezone.utc)
