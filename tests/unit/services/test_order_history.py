"""
Unit tests for the local order history archive.
"""

import json
from datetime import datetime, timedelta

import pytz

from conftest import make_order
from order_agent.services.order_history import OrderHistory


def write_log(history: OrderHistory, day: str, order_id: int) -> None:
    history.directory.mkdir(parents=True, exist_ok=True)
    path = history.directory / f"{day}_order_{order_id}.json"
    path.write_text(json.dumps({"id": order_id, "print_status": "success"}))


class TestSaveOrderLog:
    def test_writes_annotated_copy(self, history: OrderHistory) -> None:
        assert history.save_order_log(make_order(100, vendor_id="7"), "failed")

        files = list(history.directory.iterdir())
        assert len(files) == 1
        today = datetime.now(pytz.utc).strftime("%Y-%m-%d")
        assert files[0].name == f"{today}_order_100.json"

        record = json.loads(files[0].read_text())
        assert record["id"] == 100
        assert record["print_status"] == "failed"
        assert "printed_at" in record

    def test_does_not_modify_the_order(self, history: OrderHistory) -> None:
        order = make_order(100)
        history.save_order_log(order)
        assert "printed_at" not in order

    def test_unwritable_directory_returns_false(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        history = OrderHistory(blocker / "orders")

        assert history.save_order_log(make_order(1)) is False


class TestLoadOrderHistory:
    def test_newest_first_with_limit(self, history: OrderHistory) -> None:
        write_log(history, "2024-05-01", 1)
        write_log(history, "2024-05-03", 3)
        write_log(history, "2024-05-02", 2)

        assert [order["id"] for order in history.load_order_history(limit=2)] == [3, 2]

    def test_unparsable_files_are_skipped(self, history: OrderHistory) -> None:
        write_log(history, "2024-05-01", 1)
        (history.directory / "2024-05-02_order_2.json").write_text("{broken")

        assert [order["id"] for order in history.load_order_history()] == [1]

    def test_missing_directory(self, history: OrderHistory) -> None:
        assert history.load_order_history() == []


class TestCleanOrderHistory:
    def test_removes_files_older_than_retention(self, history: OrderHistory) -> None:
        today = datetime.now(pytz.utc).date()
        write_log(history, (today - timedelta(days=10)).isoformat(), 1)
        write_log(history, (today - timedelta(days=7)).isoformat(), 2)
        write_log(history, today.isoformat(), 3)

        assert history.clean_order_history(7) == 1
        assert sorted(order["id"] for order in history.load_order_history()) == [2, 3]

    def test_zero_days_removes_everything(self, history: OrderHistory) -> None:
        write_log(history, "2024-05-01", 1)
        write_log(history, datetime.now(pytz.utc).date().isoformat(), 2)

        assert history.clean_order_history(0) == 2
        assert history.load_order_history() == []

    def test_unexpected_file_names_are_kept(self, history: OrderHistory) -> None:
        history.directory.mkdir(parents=True)
        (history.directory / "notes.json").write_text("{}")

        assert history.clean_order_history(7) == 0
        assert (history.directory / "notes.json").exists()
