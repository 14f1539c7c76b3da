from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func

from salon_crm.core.database import Base

ROLE_OWNER = "OWNER"
ROLE_STAFF = "STAFF"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("salon_id", "email", name="uq_profiles_salon_email"),)

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)

    email = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ROLE_STAFF)  # OWNER / STAFF
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
