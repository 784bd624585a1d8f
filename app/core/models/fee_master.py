"""Per-class price list: (fee group, fee type, class, session) -> amount."""
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeeMaster(Base):
    __tablename__ = "fee_master"
    __table_args__ = (
        UniqueConstraint("fee_type_id", "class_id", "session_id", name="uq_fee_master_type_class_session"),
        CheckConstraint("amount >= 0", name="chk_fee_master_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    fee_group_id = Column(Integer, ForeignKey("fee_groups.id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_type_id = Column(Integer, ForeignKey("fee_types.id", ondelete="RESTRICT"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_group = relationship("FeeGroup")
    fee_type = relationship("FeeType")
    school_class = relationship("SchoolClass")
    session = relationship("AcademicSession")
