"""examples/basic_usage.py - Error tracking demo.

Demonstrates:
    - init() from keyword options (or STATLY_DSN)
    - standard-library logging calls becoming breadcrumbs
    - capture_exception() inside an except block
    - before_send filtering
    - close() flushing everything before exit

Run with a real DSN to see events arrive, e.g.:
    STATLY_DSN=https://sk_live_xxx@statly.live/acme python examples/basic_usage.py
"""

import logging

import statly_observe

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("shop")


def drop_health_checks(event):
    """before_send hook: never report noise from the health endpoint."""
    if event.get("tags", {}).get("route") == "/health":
        return None
    return event


statly_observe.init(
    release="1.4.2",
    environment="demo",
    debug=True,
    tags={"service": "shop"},
    before_send=drop_health_checks,
)
statly_observe.set_user({"id": "user-123", "email": "jane@example.com"})


def pay(user_id: int, amount: int) -> None:
    logger.info("Payment attempt: user_id=%s, amount=%s", user_id, amount)
    balance = 3_000
    if balance < amount:
        raise ValueError(f"Insufficient funds: balance={balance}, amount={amount}")
    logger.info("Payment successful")


if __name__ == "__main__":
    pay(1, 500)
    try:
        pay(1, 5_000)
    except ValueError:
        # The two "Payment attempt" log lines travel with the event as breadcrumbs.
        statly_observe.capture_exception(context={"user_id": 1})

    statly_observe.capture_message("Checkout flow finished", "info")
    statly_observe.close()
