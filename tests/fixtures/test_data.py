"""Test data factories and deterministic clocks shared across test modules."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from lifeshield.core.metrics import PrometheusMetricsSink
from lifeshield.models import PolicyIssuedMessage, QuoteRequest

FROZEN_NOW = datetime(2025, 7, 2, 12, 0, 0, tzinfo=timezone.utc)
CUSTOMER_ID = "42"


class FrozenClock:
    """Callable returning a fixed, manually advanced UTC datetime."""

    def __init__(self, now: datetime = FROZEN_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class QueueClock:
    """Epoch-seconds clock for queue visibility."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def metric_value(
    metrics: PrometheusMetricsSink, name: str, labels: dict[str, str] | None = None
) -> float:
    """Current value of a counter sample (0.0 when never incremented)."""
    return metrics.registry.get_sample_value(name, labels or {}) or 0.0


def quote_request(
    coverage: str = "10000000",
    term_years: int = 20,
    customer_id: str = CUSTOMER_ID,
) -> QuoteRequest:
    return QuoteRequest(
        customer_id=customer_id,
        coverage_amount=Decimal(coverage),
        term_years=term_years,
    )


def policy_issued_body(
    policy_id: UUID | None = None,
    customer_id: str = CUSTOMER_ID,
    issued_at: datetime = FROZEN_NOW,
) -> str:
    """Wire body of a POLICY_ISSUED message."""
    return PolicyIssuedMessage(
        policy_id=policy_id or uuid4(),
        customer_id=customer_id,
        issued_at=issued_at,
    ).to_body()


def policy_row(**overrides: Any) -> dict[str, Any]:
    """Row as asyncpg would return it from ``policies``."""
    quote_id = overrides.pop("quote_id", uuid4())
    row = {
        "id": uuid4(),
        "policy_number": f"LS-20250702120000-{quote_id.hex[:12].upper()}",
        "customer_id": CUSTOMER_ID,
        "quote_id": quote_id,
        "coverage_amount": Decimal("10000000.00"),
        "monthly_premium": Decimal("916.67"),
        "term_years": 20,
        "start_date": FROZEN_NOW.date(),
        "end_date": FROZEN_NOW.date().replace(year=2045),
        "status": "ACTIVE",
        "issued_at": FROZEN_NOW,
    }
    row.update(overrides)
    return row
