"""PlanItem model: one test case execution within a plan."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


PLAN_ITEM_RESULTS = ("PASS", "FAIL", "BLOCK", "IN_PROGRESS", "NOT_RUN")


class PlanItem(Base):
    """Execution record of a test case inside a plan."""

    __tablename__ = "plan_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    plan_id = Column(String, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False, index=True)
    test_case_id = Column(String, ForeignKey("test_cases.id"), nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    result = Column(String, nullable=False, default="NOT_RUN")
    assignee = Column(String, nullable=True)
    comment = Column(Text, nullable=True)
    defects = Column(Text, nullable=True)  # free text, usually issue tracker URLs
    executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    plan = relationship("Plan", back_populates="items")
    test_case = relationship("TestCase", back_populates="plan_items")
