from __future__ import annotations

from threading import Lock
from typing import Tuple


_lock = Lock()
_counters: dict[str, dict[Tuple[Tuple[str, str], ...], int]] = {}

_HELP = {
    "http_requests_total": "HTTP requests by route template and status.",
    "tontine_launches_total": "Tontines launched, by contribution frequency.",
    "payment_events_total": "Contribution lifecycle events (declared, confirmed, marked_paid, late).",
    "rotation_errors_total": "Domain errors answered to clients, by error code.",
}


def _key(labels: dict[str, str] | None) -> Tuple[Tuple[str, str], ...]:
    return tuple(sorted((labels or {}).items()))


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    with _lock:
        series = _counters.setdefault(name, {})
        key = _key(labels)
        series[key] = series.get(key, 0) + int(value)


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_tontine_launch(frequency: str) -> None:
    _inc("tontine_launches_total", {"frequency": frequency})


def increment_payment_event(event: str, value: int = 1) -> None:
    _inc("payment_events_total", {"event": event}, value)


def increment_rotation_error(code: str) -> None:
    _inc("rotation_errors_total", {"code": code})


def counter_value(name: str, labels: dict[str, str] | None = None) -> int:
    with _lock:
        return _counters.get(name, {}).get(_key(labels), 0)


def reset_metrics() -> None:
    with _lock:
        _counters.clear()


def _format_labels(labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in labels) + "}"


def render_prometheus() -> str:
    out: list[str] = []
    with _lock:
        for name in sorted(_counters):
            if name in _HELP:
                out.append(f"# HELP {name} {_HELP[name]}")
            out.append(f"# TYPE {name} counter")
            out.extend(
                f"{name}{_format_labels(labels)} {value}"
                for labels, value in sorted(_counters[name].items())
            )
    return "\n".join(out) + ("\n" if out else "")
