"""
Checkout records: physical possession of a booked room/equipment.

Two independent axes live on a checkout:
- `status` (active/returned/overdue/lost/damaged) tracks the physical return
- `approved_by` is the admin validation gate; NULL means "awaiting
  validation" whatever the status says

Violations hang off a checkout but never change its status. They outlive the
checkout (checkout_id is set to NULL) because they belong to the requester's
record, not to the checkout.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin, VersionMixin

ACTIVE = "active"
RETURNED = "returned"
OVERDUE = "overdue"
LOST = "lost"
DAMAGED = "damaged"

CHECKOUT_STATUSES = (ACTIVE, RETURNED, OVERDUE, LOST, DAMAGED)
CHECKOUT_CONDITIONS = ("excellent", "good", "fair", "poor")
RETURN_CONDITIONS = CHECKOUT_CONDITIONS + ("damaged", "lost")

VIOLATION_TYPES = ("late_return", "damage", "loss", "misuse", "other")
VIOLATION_SEVERITIES = ("minor", "major", "critical")
VIOLATION_STATUSES = ("active", "resolved", "disputed", "waived")


class Checkout(Base, TimestampMixin, VersionMixin):
    __tablename__ = "checkouts"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    checkout_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expected_return_date = Column(DateTime(timezone=True), nullable=False)
    actual_return_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=ACTIVE, index=True)
    checkout_notes = Column(Text, nullable=True)
    return_notes = Column(Text, nullable=True)
    condition_on_checkout = Column(String(20), nullable=False, default="good")
    condition_on_return = Column(String(20), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    returned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    total_items = Column(Integer, nullable=False, default=0)

    items = relationship(
        "CheckoutItem",
        back_populates="checkout",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'returned', 'overdue', 'lost', 'damaged')",
            name="check_checkout_status",
        ),
        CheckConstraint(
            "condition_on_checkout IN ('excellent', 'good', 'fair', 'poor')",
            name="check_checkout_condition",
        ),
    )

    def __repr__(self) -> str:
        return f"<Checkout(id={self.id}, booking={self.booking_id}, status={self.status})>"


class CheckoutItem(Base):
    __tablename__ = "checkout_items"

    id = Column(Integer, primary_key=True, index=True)
    checkout_id = Column(
        Integer, ForeignKey("checkouts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    condition_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    checkout = relationship("Checkout", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_checkout_item_quantity_positive"),
    )


class Violation(Base, TimestampMixin, VersionMixin):
    __tablename__ = "checkout_violations"

    id = Column(Integer, primary_key=True, index=True)
    checkout_id = Column(
        Integer, ForeignKey("checkouts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    violation_type = Column(String(20), nullable=False)
    severity = Column(String(20), nullable=False, default="minor")
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    penalty_amount = Column(Numeric(10, 2), nullable=False, default=0)
    penalty_paid = Column(Boolean, nullable=False, default=False)
    reported_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "violation_type IN ('late_return', 'damage', 'loss', 'misuse', 'other')",
            name="check_violation_type",
        ),
        CheckConstraint("severity IN ('minor', 'major', 'critical')", name="check_violation_severity"),
        CheckConstraint(
            "status IN ('active', 'resolved', 'disputed', 'waived')",
            name="check_violation_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Violation(id={self.id}, checkout={self.checkout_id}, severity={self.severity})>"
