"""Pricing router for package quotes."""

from fastapi import APIRouter

from ..core.dependencies import PricingServiceDependency
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.pricing import PriceQuote, QuoteRequest
from ..services.pricing_service import PricingService

router = APIRouter(prefix="/v1/pricing", tags=["pricing"], responses=PROBLEM_RESPONSES)


@router.post("/quote", response_model=PriceQuote)
async def quote_price(
    request: QuoteRequest,
    pricing_service: PricingService = PricingServiceDependency,
) -> PriceQuote:
    """
    Quote a package total for the party.

    Answers 404 with code PRICE_UNAVAILABLE when the reference prices needed
    are missing; the storefront shows "price on request" in that case.
    """
    return await pricing_service.quote(
        adults=request.adults,
        child_ages=request.child_ages,
        flight_option_id=request.flight_option_id,
        lodging_option_id=request.lodging_option_id,
    )
