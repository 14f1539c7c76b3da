from sqlalchemy import Column, DateTime, Integer, String, func

from salon_crm.core.database import Base


class Salon(Base):
    __tablename__ = "salons"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Per-salon loyalty overrides; NULL keeps the program default.
    loyalty_silver_min_visits = Column(Integer, nullable=True)
    loyalty_gold_min_visits = Column(Integer, nullable=True)
    loyalty_platinum_min_visits = Column(Integer, nullable=True)
    loyalty_bronze_discount = Column(Integer, nullable=True)
    loyalty_silver_discount = Column(Integer, nullable=True)
    loyalty_gold_discount = Column(Integer, nullable=True)
    loyalty_platinum_discount = Column(Integer, nullable=True)
