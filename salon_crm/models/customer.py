from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, SmallInteger, String, func
from sqlalchemy.orm import relationship

from salon_crm.core.database import Base


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (Index("ix_customers_salon_birthday", "salon_id", "birth_month", "birth_day"),)

    id = Column(Integer, primary_key=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    full_name = Column(String(120), nullable=False)
    phone = Column(String(30), nullable=False, index=True)
    # Day and month only; the year is never collected.
    birth_day = Column(SmallInteger, nullable=True)
    birth_month = Column(SmallInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_visit_at = Column(DateTime(timezone=True), nullable=True, index=True)

    visits = relationship("Visit", back_populates="customer", order_by="Visit.visited_at")
