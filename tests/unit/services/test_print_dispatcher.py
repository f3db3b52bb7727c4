"""
Unit tests for the print dispatcher (the listener's on_order handler).
"""

import pytest

from conftest import make_order
from order_agent.errors import DispatchError, PrinterError
from order_agent.printing.base import Printer
from order_agent.services.print_dispatcher import PrintDispatcher


class FakePrinter(Printer):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.printed = []

    def get_name(self) -> str:
        return "fake"

    async def print_order(self, order, printer_name):
        if self.fail:
            raise PrinterError("paper jam")
        self.printed.append((order["id"], printer_name))

    async def list_printers(self):
        return [{"name": "Receipt", "is_default": True}]


class TestPrintDispatcher:
    @pytest.mark.asyncio
    async def test_successful_print(self, history, notifier) -> None:
        printer = FakePrinter()
        dispatcher = PrintDispatcher(printer, "Receipt", history, notifier)

        await dispatcher(make_order(100, vendor_id="7"))

        assert printer.printed == [(100, "Receipt")]
        archived = history.load_order_history()
        assert archived[0]["id"] == 100
        assert archived[0]["print_status"] == "success"
        assert [n.type for n in notifier.recent()] == ["success", "info"]

    @pytest.mark.asyncio
    async def test_failed_print_is_archived_and_raised(self, history, notifier) -> None:
        dispatcher = PrintDispatcher(FakePrinter(fail=True), "Receipt", history, notifier)

        with pytest.raises(DispatchError) as exc_info:
            await dispatcher(make_order(100, vendor_id="7"))

        assert exc_info.value.order_id == 100
        assert history.load_order_history()[0]["print_status"] == "failed"
        latest = notifier.recent()[0]
        assert latest.type == "error"
        assert latest.print_status == "failed"
        assert "paper jam" in latest.message
