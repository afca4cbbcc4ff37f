"""examples/tracing_usage.py - Span tracing demo.

Demonstrates the three ways to time work:
    - @traced on a function (bound arguments become span metadata)
    - trace_span() as a with-block
    - trace() with an explicit operation callable

Spans started while another is active become its children and share its
trace id. A failing block marks its span as errored and re-raises.
"""

import time

import statly_observe
from statly_observe import traced

statly_observe.init(dsn="https://sk_live_demo@statly.live/acme", auto_capture=False)


@traced(tags={"db": "primary"})
def load_orders(customer_id: int) -> list:
    time.sleep(0.02)
    return [{"id": 1, "customer": customer_id}]


def render(span):
    span.set_metadata("template", "orders.html")
    return "<ul>...</ul>"


if __name__ == "__main__":
    with statly_observe.trace_span("GET /orders", tags={"http.method": "GET"}) as request:
        orders = load_orders(42)
        request.set_tag("orders.count", str(len(orders)))

    statly_observe.trace("render", render)

    try:
        with statly_observe.trace_span("charge"):
            raise ConnectionError("payment gateway timeout")
    except ConnectionError:
        pass

    statly_observe.close()
