"""ReportShareLink model for public plan report URLs."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ReportShareLink(Base):
    """Public share token for a plan report.

    A link is live while ``revoked_at`` is unset and ``expires_at`` lies in the
    future. Links are never deleted here; plans holding links cannot be deleted.
    """

    __tablename__ = "report_share_links"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String, nullable=False, unique=True, index=True)
    plan_id = Column(String, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_by_user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    plan = relationship("Plan", back_populates="share_links")
    created_by = relationship("User", back_populates="report_share_links")
