from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from salon_crm.core.database import Base

CAMPAIGN_DRAFT = "DRAFT"
CAMPAIGN_SCHEDULED = "SCHEDULED"
CAMPAIGN_SENDING = "SENDING"
CAMPAIGN_SENT = "SENT"

CAMPAIGN_TYPE_MANUAL = "MANUAL"
CAMPAIGN_TYPE_INACTIVE = "INACTIVE"
CAMPAIGN_TYPE_BIRTHDAY = "BIRTHDAY"
CAMPAIGN_TYPES = {CAMPAIGN_TYPE_MANUAL, CAMPAIGN_TYPE_INACTIVE, CAMPAIGN_TYPE_BIRTHDAY}

RECIPIENT_PENDING = "PENDING"
RECIPIENT_SENT = "SENT"
RECIPIENT_FAILED = "FAILED"
RECIPIENT_DELIVERED = "DELIVERED"
RECIPIENT_OPENED = "OPENED"


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True)
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    campaign_type = Column(String(30), nullable=False, default=CAMPAIGN_TYPE_MANUAL)
    # DRAFT / SCHEDULED -> SENDING -> SENT
    status = Column(String(20), nullable=False, default=CAMPAIGN_DRAFT, index=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    recipients = relationship(
        "CampaignRecipient",
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="CampaignRecipient.id",
    )


class CampaignRecipient(Base):
    __tablename__ = "campaign_recipients"

    id = Column(Integer, primary_key=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    # Snapshot taken when the recipient row is created.
    phone = Column(String(30), nullable=False)
    # PENDING -> SENT | FAILED; SENT -> DELIVERED -> OPENED
    status = Column(String(20), nullable=False, default=RECIPIENT_PENDING, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(String(255), nullable=True)

    campaign = relationship("Campaign", back_populates="recipients")
    customer = relationship("Customer")


class CampaignTemplate(Base):
    __tablename__ = "campaign_templates"

    id = Column(Integer, primary_key=True)
    # NULL salon_id means the template applies to every salon.
    salon_id = Column(Integer, ForeignKey("salons.id"), nullable=True, index=True)
    campaign_type = Column(String(30), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
