"""
Entry point for running the headless monitoring worker as a module.
Usage: python -m order_agent.workers
"""
import asyncio
import sys

from order_agent.utils.logger import configure_logging
from order_agent.workers.monitor_worker import run_worker

if __name__ == "__main__":
    configure_logging()
    try:
        sys.exit(asyncio.run(run_worker()))
    except KeyboardInterrupt:
        sys.exit(0)
