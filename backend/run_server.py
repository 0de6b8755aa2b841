"""Simple server runner that keeps uvicorn alive."""
import logging
import signal
import sys

import uvicorn

from pharmacy.core.config import settings


def handle_signal(sig, frame):
    print(f"\nReceived signal {sig}, shutting down gracefully...")
    sys.exit(0)


signal.signal(signal.SIGINT, handle_signal)
signal.signal(signal.SIGTERM, handle_signal)

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    print("=" * 50)
    print(f"  Starting {settings.SERVICE_NAME}")
    print("=" * 50)
    uvicorn.run(
        "pharmacy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
