"""Reference package price model definition."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base, utcnow


class PackagePrice(Base):
    """
    Pre-computed price of a flight + lodging package for one occupancy.

    Rows are produced by an external pricing job and only read here. Amounts
    are integer minor units.
    """

    __tablename__ = "package_prices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Lookup key
    adults_count: Mapped[int] = mapped_column(Integer, nullable=False)
    children_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    flight_option_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lodging_option_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Components
    flight_price: Mapped[int] = mapped_column(Integer, nullable=False)
    lodging_price: Mapped[int] = mapped_column(Integer, nullable=False)
    transfer_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "adults_count", "children_count", "flight_option_id", "lodging_option_id",
            name="uq_package_price_occupancy_options"
        ),
        CheckConstraint("adults_count > 0", name="ck_package_price_adults_positive"),
        CheckConstraint("children_count >= 0", name="ck_package_price_children_non_negative"),
        CheckConstraint("total_price >= 0", name="ck_package_price_total_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<PackagePrice(adults={self.adults_count}, children={self.children_count}, "
            f"flight='{self.flight_option_id}', lodging='{self.lodging_option_id}', total={self.total_price})>"
        )
