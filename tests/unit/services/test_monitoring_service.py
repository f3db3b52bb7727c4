"""
Unit tests for the monitoring service: start refusals, config changes, resets, test prints.
"""

import pytest

from conftest import DOKAN_STORES, ORDERS, FakeStore, make_order, vendor_strategy_routes
from order_agent.errors import DispatchError, OwnershipViolation, PrinterError
from order_agent.printing.base import Printer
from order_agent.services.config_store import ConfigStore
from order_agent.services.monitoring_service import MonitoringService
from order_agent.workers.order_listener import OrderListener


class FakePrinter(Printer):
    def __init__(self):
        self.fail = False
        self.printed = []

    def get_name(self) -> str:
        return "fake"

    async def print_order(self, order, printer_name):
        if self.fail:
            raise PrinterError("printer offline")
        self.printed.append(order["id"])

    async def list_printers(self):
        return [{"name": "Receipt", "is_default": True}]


@pytest.fixture
def printer() -> FakePrinter:
    return FakePrinter()


@pytest.fixture
def config_store(tmp_path) -> ConfigStore:
    return ConfigStore(tmp_path / "config.json", encryption_key="")


@pytest.fixture
def service(fake_store: FakeStore, config_store, ledger, history, notifier, tick_sleep, printer):
    listener = OrderListener(ledger, client_factory=fake_store.client_factory(), notifier=notifier, sleep=tick_sleep)
    return MonitoringService(
        config_store=config_store,
        listener=listener,
        history=history,
        notifier=notifier,
        printer_factory=lambda config: printer,
        client_factory=fake_store.client_factory(),
    )


class TestStart:
    @pytest.mark.asyncio
    async def test_refuses_without_printer(self, service, config_store, agent_config, notifier) -> None:
        config_store.save(agent_config.model_copy(update={"printer_id": ""}))

        assert await service.start_monitoring() is False
        assert not service.running
        assert notifier.recent()[0].type == "error"

    @pytest.mark.asyncio
    async def test_refuses_without_vendor_id(self, service, config_store, agent_config, fake_store, notifier) -> None:
        config_store.save(agent_config.model_copy(update={"vendor_id": ""}))

        assert await service.start_monitoring() is False
        assert "Vendor ID" in notifier.recent()[0].message
        assert fake_store.requests == []

    @pytest.mark.asyncio
    async def test_start_prints_new_orders(self, service, config_store, agent_config, fake_store, printer, history) -> None:
        config_store.save(agent_config)
        vendor_strategy_routes(fake_store, vendor_parameter=[make_order(100, vendor_id="7")])

        try:
            assert await service.start_monitoring() is True
            assert service.running
            assert printer.printed == [100]
            assert history.load_order_history()[0]["print_status"] == "success"
            assert service.status()["vendor_id"] == "7"
        finally:
            await service.shutdown()

        assert not service.running


class TestSaveConfig:
    @pytest.mark.asyncio
    async def test_masked_password_keeps_stored_password(self, service, config_store, agent_config) -> None:
        config_store.save(agent_config)
        update = agent_config.masked()
        update["printer_id"] = "Kitchen"

        result = await service.save_config(update)

        assert result == {"success": True, "detected_vendor_id": None, "restarted": False}
        stored = config_store.load()
        assert stored.password == "secret"
        assert stored.printer_id == "Kitchen"

    @pytest.mark.asyncio
    async def test_interval_change_restarts_running_listener(
        self, service, config_store, agent_config, fake_store
    ) -> None:
        config_store.save(agent_config)
        vendor_strategy_routes(fake_store)

        try:
            await service.start_monitoring()
            result = await service.save_config(agent_config.model_copy(update={"check_interval": 120}))

            assert result["restarted"] is True
            assert service.running
            assert service.status()["check_interval_seconds"] == 120
        finally:
            await service.shutdown()

    @pytest.mark.asyncio
    async def test_printer_change_does_not_restart(self, service, config_store, agent_config, fake_store) -> None:
        config_store.save(agent_config)
        vendor_strategy_routes(fake_store)

        try:
            await service.start_monitoring()
            result = await service.save_config(agent_config.model_copy(update={"printer_id": "Kitchen"}))
            assert result["restarted"] is False
        finally:
            await service.shutdown()

    @pytest.mark.asyncio
    async def test_missing_vendor_id_is_detected(self, service, config_store, agent_config, fake_store) -> None:
        fake_store.on(DOKAN_STORES, [{"id": 7, "store_name": "Coffee", "email": "vendor@example.com"}], per_page=100)

        result = await service.save_config(agent_config.model_copy(update={"vendor_id": ""}))

        assert result["detected_vendor_id"] == "7"
        assert config_store.load().vendor_id == "7"

    @pytest.mark.asyncio
    async def test_undetectable_vendor_is_saved_empty(self, service, config_store, agent_config) -> None:
        result = await service.save_config(agent_config.model_copy(update={"vendor_id": ""}))

        assert result["detected_vendor_id"] is None
        assert config_store.load().vendor_id == ""


class TestResets:
    @pytest.mark.asyncio
    async def test_clear_processed_orders_reprints_after_restart(
        self, service, config_store, agent_config, fake_store, printer, ledger
    ) -> None:
        config_store.save(agent_config)
        vendor_strategy_routes(fake_store, vendor_parameter=[make_order(100, vendor_id="7")])

        try:
            await service.start_monitoring()
            result = await service.clear_processed_orders()

            assert result == {"success": True, "restarted": True}
            assert printer.printed == [100, 100]
            assert ledger.has("100")
        finally:
            await service.shutdown()

    @pytest.mark.asyncio
    async def test_clear_processed_orders_when_stopped(self, service, ledger) -> None:
        ledger.add("100")

        result = await service.clear_processed_orders()

        assert result == {"success": True, "restarted": False}
        assert not ledger.has("100")

    @pytest.mark.asyncio
    async def test_clear_order_history(self, service, history) -> None:
        history.save_order_log(make_order(1, vendor_id="7"), "success")
        history.save_order_log(make_order(2, vendor_id="7"), "failed")

        result = await service.clear_order_history()

        assert result == {"success": True, "removed": 2, "restarted": False}
        assert history.load_order_history() == []


class TestTestPrint:
    @pytest.mark.asyncio
    async def test_prints_on_configured_printer(self, service, config_store, agent_config, printer, ledger) -> None:
        config_store.save(agent_config)

        result = await service.test_print(make_order(5))

        assert result == {"success": True, "order_id": 5, "printer": "Receipt"}
        assert printer.printed == [5]
        assert not ledger.has("5")

    @pytest.mark.asyncio
    async def test_failure_raises_dispatch_error(self, service, config_store, agent_config, printer) -> None:
        config_store.save(agent_config)
        printer.fail = True

        with pytest.raises(DispatchError):
            await service.test_print(make_order(5), printer_name="Kitchen")


class TestOrderDetails:
    @pytest.mark.asyncio
    async def test_other_vendors_order_is_refused(self, service, config_store, agent_config, fake_store) -> None:
        config_store.save(agent_config)
        fake_store.on(f"{ORDERS}/100", make_order(100, vendor_id="8"))

        with pytest.raises(OwnershipViolation):
            await service.get_order_details(100)
