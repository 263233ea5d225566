import json
from decimal import Decimal

from arbbot.analytics import AnalyticsRecorder

PAIR = ("0xaaa", "0xbbb")


def test_stats_start_empty():
    stats = AnalyticsRecorder().get_stats()

    assert stats["total_cycles"] == 0
    assert stats["total_opportunities"] == 0
    assert stats["total_executions"] == 0
    assert stats["total_profit"] == 0
    assert stats["success_rate"] == 0.0


def test_stats_track_records():
    analytics = AnalyticsRecorder()
    analytics.record_cycle()
    analytics.record_cycle()
    analytics.record_opportunity(PAIR, Decimal("2"))
    analytics.record_opportunity(PAIR, Decimal("0.5"))
    analytics.record_execution(PAIR, 500, Decimal("10"), "0xtx")

    stats = analytics.get_stats()

    assert stats["total_cycles"] == 2
    assert stats["total_opportunities"] == 2
    assert stats["total_executions"] == 1
    assert stats["total_profit"] == Decimal("10")
    assert stats["avg_profit"] == Decimal("10")
    assert stats["success_rate"] == 50.0
    assert stats["best_profit_percent"] == Decimal("2")
    assert "Opportunities Found: 2" in analytics.get_summary()


def test_history_written_to_file(tmp_path):
    path = tmp_path / "data" / "analytics.json"
    analytics = AnalyticsRecorder(path)
    analytics.record_opportunity(PAIR, Decimal("1.25"))
    analytics.record_execution(PAIR, 500, Decimal("6.25"), "0xtx")
    analytics.close()

    data = json.loads(path.read_text())

    assert data["opportunities"][0]["pair"] == "0xaaa/0xbbb"
    assert data["opportunities"][0]["profitPercentage"] == "1.25"
    assert data["executions"][0]["txId"] == "0xtx"
    assert data["executions"][0]["amount"] == 500
    assert data["profits"] == ["6.25"]


def test_history_is_reloaded(tmp_path):
    path = tmp_path / "analytics.json"
    first = AnalyticsRecorder(path)
    first.record_execution(PAIR, 100, Decimal("3"), "0x1")
    first.close()

    second = AnalyticsRecorder(path)

    assert second.get_stats()["total_executions"] == 1
    assert second.get_stats()["total_profit"] == Decimal("3")


def test_corrupt_history_starts_fresh(tmp_path):
    path = tmp_path / "analytics.json"
    path.write_text("{not json")

    assert AnalyticsRecorder(path).get_stats()["total_executions"] == 0


def test_records_after_close_stay_in_memory(tmp_path):
    path = tmp_path / "analytics.json"
    analytics = AnalyticsRecorder(path)
    analytics.close()

    analytics.record_opportunity(PAIR, Decimal("1"))

    assert analytics.get_stats()["total_opportunities"] == 1
    assert not path.exists()
