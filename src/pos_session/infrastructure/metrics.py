from prometheus_client import CollectorRegistry, Counter, Gauge

registry = CollectorRegistry()

sessions_created = Counter(
    "pos_session_created_total", "Session rows created by the coordinator", registry=registry
)
sessions_extended = Counter(
    "pos_session_extended_total", "Successful session extensions", registry=registry
)
forced_logouts = Counter(
    "pos_session_forced_logout_total",
    "Sessions ended without user request",
    ["reason"],
    registry=registry,
)
poll_ticks = Counter(
    "pos_session_poll_ticks_total", "Expiration checks executed", registry=registry
)
store_errors = Counter(
    "pos_session_store_errors_total",
    "Session store failures by operation",
    ["operation"],
    registry=registry,
)
observers = Gauge(
    "pos_session_observers", "Observers currently subscribed", registry=registry
)
