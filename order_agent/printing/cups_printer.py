"""
CUPS printer backend.
Submits receipts with `lp` (text on stdin) and lists queues with `lpstat`.
"""

import asyncio
from typing import Any, Optional, Sequence

import structlog

from order_agent.config import settings
from order_agent.errors import PrinterError
from order_agent.printing.base import Printer
from order_agent.printing.receipt import safe_render_receipt

logger = structlog.get_logger()


async def _run(args: Sequence[str], stdin: Optional[bytes] = None, timeout: float = 30.0) -> tuple[int, str, str]:
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE if stdin is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    return process.returncode, stdout.decode(errors="replace"), stderr.decode(errors="replace")


class CupsPrinter(Printer):
    """Prints plain-text receipts through the CUPS command line tools."""

    def __init__(self, print_command: Optional[str] = None, width: Optional[int] = None, store_name: Optional[str] = None):
        self.print_command = print_command or settings.print_command
        self.width = width or settings.print_width
        self.store_name = store_name

    def get_name(self) -> str:
        return "cups"

    async def print_order(self, order: dict[str, Any], printer_name: str) -> None:
        order_id = order.get("id")
        receipt = safe_render_receipt(order, width=self.width, store_name=self.store_name)

        args = [self.print_command]
        if printer_name:
            args += ["-d", printer_name]
        args += ["-t", f"Order {order_id}"]

        logger.info("Submitting print job", order_id=order_id, printer=printer_name or "default")
        try:
            returncode, stdout, stderr = await _run(args, stdin=receipt.encode("utf-8"))
        except FileNotFoundError as e:
            raise PrinterError(f"Print command not found: {self.print_command}") from e
        except asyncio.TimeoutError as e:
            raise PrinterError(f"Print command timed out for order #{order_id}") from e

        if returncode != 0:
            raise PrinterError(f"{self.print_command} exited with {returncode}: {stderr.strip() or stdout.strip()}")

        logger.info("Print job submitted", order_id=order_id, printer=printer_name or "default", job=stdout.strip())

    async def list_printers(self) -> list[dict[str, Any]]:
        try:
            returncode, stdout, stderr = await _run(["lpstat", "-e"])
            if returncode != 0:
                logger.warning("lpstat failed, no printers listed", returncode=returncode, error=stderr.strip())
                return []
            names = [line.strip() for line in stdout.splitlines() if line.strip()]

            default = ""
            returncode, stdout, _ = await _run(["lpstat", "-d"])
            # "system default destination: <name>"
            if returncode == 0 and ":" in stdout:
                default = stdout.split(":", 1)[1].strip()
        except (FileNotFoundError, asyncio.TimeoutError) as e:
            logger.warning("Could not list printers", error=str(e) or type(e).__name__)
            return []

        logger.info("Printers listed", count=len(names), default=default or None)
        return [{"name": name, "is_default": name == default} for name in names]
