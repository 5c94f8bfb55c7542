"""
IriQ Node - soil moisture and irrigation pump controller

Samples the moisture probe, drives the pump relay and keeps the Supabase
backend in sync over an intermittent network.
"""

import logging
import signal
import sys

from . import config
from .core.server import DeviceServer
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Main entry point"""
    setup_logging()
    logger.info(
        f"Starting IriQ node (device_id: {config.DEVICE_ID}, auth: {config.AUTH_MODE}, "
        f"simulate: {config.SIMULATE_HARDWARE})"
    )

    server = DeviceServer()

    # Handle shutdown signals
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        server.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server.run()
    except Exception as e:
        logger.error(f"Server crashed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
