"""examples/logger_usage.py - Structured logger demo.

Demonstrates:
    - console + rotating file destinations
    - automatic secret scrubbing of messages and context
    - child loggers with extra context
    - audit entries that bypass every level filter
    - error() with an exception object
"""

import tempfile
from pathlib import Path

from statly_observe.logger import Logger

log_dir = Path(tempfile.mkdtemp(prefix="statly-demo-"))

log = Logger(
    logger_name="billing",
    level="info",
    environment="demo",
    destinations={
        "console": {"format": "pretty"},
        "file": {
            "enabled": True,
            "path": str(log_dir / "billing.log"),
            "rotation": {"type": "size", "max_size": "1MB", "max_files": 3},
        },
    },
    scrubbing={"patterns": ["password", "token", "credit_card", "email"]},
    context={"service": "billing"},
)

if __name__ == "__main__":
    log.debug("Not shown: below the info level")
    log.info("Customer signed in", {"email": "jane@example.com", "password": "hunter2"})

    checkout = log.child(name="billing.checkout", context={"cart_id": "c-99"})
    checkout.warn("Card declined once, retrying", {"card": "4111111111111111"})

    try:
        1 / 0
    except ZeroDivisionError as exc:
        checkout.error(exc, {"step": "tax"})

    log.set_level("error")
    log.audit("Refund issued", {"amount": 25, "by": "admin-7"})

    log.close()
    print(f"\nFile output written to {log_dir / 'billing.log'}")
