"""Academic session (year/term). Classes, sections, students and fees are scoped to one session."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Column, Date, DateTime, Integer, String

from app.db.session import Base


class AcademicSession(Base):
    """At most one session has status 'active'; switching is an explicit admin action."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="inactive")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def is_active(self, today: Optional[date] = None) -> bool:
        """Informational: status active and today within the session dates."""
        today = today or date.today()
        return self.status == "active" and self.start_date <= today <= self.end_date
