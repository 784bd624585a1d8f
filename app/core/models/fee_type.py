"""Fee type: chargeable item in a fee group. amount is the default price; per-class prices live in fee_master."""
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeeType(Base):
    __tablename__ = "fee_types"
    __table_args__ = (
        UniqueConstraint("fee_group_id", "session_id", "name", name="uq_fee_type_group_session_name"),
        CheckConstraint("amount >= 0", name="chk_fee_type_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    fee_group_id = Column(Integer, ForeignKey("fee_groups.id", ondelete="RESTRICT"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="RESTRICT"), nullable=False, index=True)
    frequency = Column(String(20), nullable=False, default="one_time")  # one_time, monthly, quarterly, yearly
    due_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_group = relationship("FeeGroup", backref="fee_types")
    session = relationship("AcademicSession")
