"""Pricing-related Pydantic schemas."""

from typing import Annotated, List

from pydantic import BaseModel, Field

ChildAge = Annotated[int, Field(ge=0, le=11)]


class QuoteRequest(BaseModel):
    """Request schema for quoting a package price."""

    adults: int = Field(..., ge=1, le=20, description="Number of adults")
    child_ages: List[ChildAge] = Field(
        default_factory=list,
        max_length=10,
        description="Age of each child in years (0-11)"
    )
    flight_option_id: str = Field(..., min_length=1, max_length=64, description="Selected flight option")
    lodging_option_id: str = Field(..., min_length=1, max_length=64, description="Selected lodging option")

    model_config = {
        "json_schema_extra": {
            "example": {
                "adults": 2,
                "child_ages": [4, 9],
                "flight_option_id": "SOF-HRG-2025-07-01",
                "lodging_option_id": "hotel-41-double",
            }
        }
    }


class ChildCharge(BaseModel):
    """What one child adds to the baseline, per component, in minor units."""

    age: int = Field(..., ge=0, le=11)
    band: str = Field(..., description="infant, young_child or child")
    flight_price: int = Field(..., ge=0)
    lodging_price: int = Field(..., ge=0)
    transfer_price: int = Field(..., ge=0)
    total_price: int = Field(..., ge=0)


class PriceQuote(BaseModel):
    """Price quote response schema; amounts in minor units."""

    adults: int
    child_ages: List[int]
    flight_option_id: str
    lodging_option_id: str
    currency: str = Field(..., description="ISO 4217 currency code")
    nights: int = Field(..., ge=0, description="Nights of the reference package")
    flight_price: int
    lodging_price: int
    transfer_price: int
    baseline_total: int = Field(..., description="Adults-only total for the same options")
    total_price: int
    children: List[ChildCharge] = Field(default_factory=list)
