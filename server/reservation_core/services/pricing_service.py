"""Package price quotes derived from pre-computed reference rows."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import PriceUnavailableError, ValidationError
from ..core.observability import get_logger, metrics_collector
from ..models.pricing import PackagePrice
from ..schemas.pricing import ChildCharge, PriceQuote

logger = get_logger(__name__)

MAX_CHILD_AGE = 11
INFANT_MAX_AGE = 1
YOUNG_CHILD_MAX_AGE = 6

COMPONENTS = ("flight", "lodging", "transfer")


class PriceRow(Protocol):
    adults_count: int
    children_count: int
    flight_price: int
    lodging_price: int
    transfer_price: int
    total_price: int
    nights: int
    currency: str


def calendar_nights(start: date | datetime, end: date | datetime) -> int:
    """Number of midnights crossed between two instants (23:00 to 01:00 is one night)."""
    start_day = start.date() if isinstance(start, datetime) else start
    end_day = end.date() if isinstance(end, datetime) else end
    return (end_day - start_day).days


def age_band(age: int) -> str:
    """Map a child's age to its pricing band."""
    if age < 0 or age > MAX_CHILD_AGE:
        raise ValidationError(
            detail=f"Child ages must be between 0 and {MAX_CHILD_AGE}",
            violations=[{"path": "child_ages", "message": f"age {age} out of range"}],
        )
    if age <= INFANT_MAX_AGE:
        return "infant"
    if age <= YOUNG_CHILD_MAX_AGE:
        return "young_child"
    return "child"


@dataclass
class _ComponentShare:
    """
    Per-child share of one component's delta, truncated then reconciled.

    Each charged child pays the floor quotient; the first ``remainder`` of
    every ``children_count`` consecutive charges pay one extra unit, so any
    ``children_count`` consecutive charges add up to the delta exactly.
    """

    base: int
    remainder: int
    period: int
    charged: int = 0

    def next_charge(self) -> int:
        extra = 1 if self.charged % self.period < self.remainder else 0
        self.charged += 1
        return self.base + extra


def _shares(exemplar: PriceRow, exemplar_baseline: PriceRow) -> dict[str, _ComponentShare]:
    period = exemplar.children_count
    shares = {}
    for component in COMPONENTS:
        delta = abs(
            getattr(exemplar, f"{component}_price") - getattr(exemplar_baseline, f"{component}_price")
        )
        base, remainder = divmod(delta, period)
        shares[component] = _ComponentShare(base=base, remainder=remainder, period=period)
    return shares


def derive_quote(
    adults: int,
    child_ages: Sequence[int],
    flight_option_id: str,
    lodging_option_id: str,
    baseline: PriceRow,
    exemplar: PriceRow | None = None,
    exemplar_baseline: PriceRow | None = None,
) -> PriceQuote:
    """
    Price a party from its adults-only baseline plus per-child contributions.

    Infants are free. Young children pay flight and transfer, and lodging only
    from the second young child on. Older children pay all three components.
    Per-child amounts come from the exemplar row's delta over its own
    adults-only baseline.
    """
    bands = [age_band(age) for age in child_ages]
    charges: list[ChildCharge] = []

    if child_ages:
        if exemplar is None or exemplar_baseline is None:
            raise ValueError("exemplar rows are required when pricing children")
        shares = _shares(exemplar, exemplar_baseline)
        young_seen = 0
        for age, band in zip(child_ages, bands):
            paid = {component: 0 for component in COMPONENTS}
            if band == "young_child":
                paid["flight"] = shares["flight"].next_charge()
                paid["transfer"] = shares["transfer"].next_charge()
                if young_seen >= 1:
                    paid["lodging"] = shares["lodging"].next_charge()
                young_seen += 1
            elif band == "child":
                for component in COMPONENTS:
                    paid[component] = shares[component].next_charge()
            charges.append(
                ChildCharge(
                    age=age,
                    band=band,
                    flight_price=paid["flight"],
                    lodging_price=paid["lodging"],
                    transfer_price=paid["transfer"],
                    total_price=sum(paid.values()),
                )
            )

    return PriceQuote(
        adults=adults,
        child_ages=list(child_ages),
        flight_option_id=flight_option_id,
        lodging_option_id=lodging_option_id,
        currency=baseline.currency,
        nights=baseline.nights,
        flight_price=baseline.flight_price + sum(c.flight_price for c in charges),
        lodging_price=baseline.lodging_price + sum(c.lodging_price for c in charges),
        transfer_price=baseline.transfer_price + sum(c.transfer_price for c in charges),
        baseline_total=baseline.total_price,
        total_price=baseline.total_price + sum(c.total_price for c in charges),
        children=charges,
    )


class PricingService:
    """Service for quoting package prices."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(
        self, adults: int, children: int, flight_option_id: str, lodging_option_id: str
    ) -> PackagePrice | None:
        stmt = select(PackagePrice).where(
            PackagePrice.adults_count == adults,
            PackagePrice.children_count == children,
            PackagePrice.flight_option_id == flight_option_id,
            PackagePrice.lodging_option_id == lodging_option_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _exemplar(self, adults: int, flight_option_id: str, lodging_option_id: str) -> PackagePrice | None:
        """A row with children for the options; same adults first, then fewest adults, then fewest children."""
        stmt = (
            select(PackagePrice)
            .where(
                PackagePrice.flight_option_id == flight_option_id,
                PackagePrice.lodging_option_id == lodging_option_id,
                PackagePrice.children_count > 0,
            )
            .order_by(
                (PackagePrice.adults_count != adults),
                PackagePrice.adults_count,
                PackagePrice.children_count,
            )
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    def _unavailable(self, flight_option_id: str, lodging_option_id: str, reason: str) -> PriceUnavailableError:
        metrics_collector.record_quote("unavailable")
        logger.info(
            "Price unavailable",
            flight_option_id=flight_option_id,
            lodging_option_id=lodging_option_id,
            reason=reason,
        )
        return PriceUnavailableError(flight_option_id, lodging_option_id, reason)

    async def quote(
        self,
        adults: int,
        child_ages: Sequence[int],
        flight_option_id: str,
        lodging_option_id: str,
    ) -> PriceQuote:
        """
        Quote a total for the party.

        Raises:
            ValidationError: If adults is not positive or a child age is outside 0-11
            PriceUnavailableError: If the reference rows needed are missing
        """
        if adults < 1:
            raise ValidationError(
                detail="At least one adult is required",
                violations=[{"path": "adults", "message": f"got {adults}"}],
            )
        for age in child_ages:
            age_band(age)

        baseline = await self._row(adults, 0, flight_option_id, lodging_option_id)
        if baseline is None:
            raise self._unavailable(
                flight_option_id, lodging_option_id, f"No price for {adults} adults without children"
            )

        exemplar = exemplar_baseline = None
        if child_ages:
            exemplar = await self._exemplar(adults, flight_option_id, lodging_option_id)
            if exemplar is None:
                raise self._unavailable(
                    flight_option_id, lodging_option_id, "No reference price with children for these options"
                )
            exemplar_baseline = await self._row(exemplar.adults_count, 0, flight_option_id, lodging_option_id)
            if exemplar_baseline is None:
                raise self._unavailable(
                    flight_option_id,
                    lodging_option_id,
                    f"No adults-only price for the {exemplar.adults_count}-adult reference",
                )

        quote = derive_quote(
            adults, child_ages, flight_option_id, lodging_option_id, baseline, exemplar, exemplar_baseline
        )
        metrics_collector.record_quote("priced")
        logger.info(
            "Price quoted",
            flight_option_id=flight_option_id,
            lodging_option_id=lodging_option_id,
            adults=adults,
            children=len(child_ages),
            total_price=quote.total_price,
        )
        return quote
