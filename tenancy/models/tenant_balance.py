"""Running tenant balance per occupancy."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenancy.models import Base, BaseModel


class TenantBalance(Base, BaseModel):
    """Over- or under-payment carried by a tenant for one occupancy.

    Positive = credit, negative = debt. Updated only when a landlord
    approves a payment.
    """

    __tablename__ = "tenant_balances"

    tenant_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    occupancy_id: Mapped[int] = mapped_column(ForeignKey("occupancies.id"), nullable=False)
    landlord_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("tenant_id", "occupancy_id", name="uq_tenant_balance_occupancy"),
    )

    def __repr__(self) -> str:
        return (
            f"<TenantBalance(tenant_id={self.tenant_id}, occupancy_id={self.occupancy_id}, "
            f"amount={self.amount})>"
        )


__all__ = ["TenantBalance"]
