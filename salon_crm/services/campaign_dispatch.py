"""Campaign dispatch: creates a campaign with its recipients and sends one SMS per recipient.

Recipients are processed one at a time. A failed send marks only that
recipient FAILED; the campaign finishes as SENT. If a status write fails
mid-batch the campaign goes back to SCHEDULED and the recipients that are
still PENDING are retried by the next scheduled run.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_crm.core.config import CAMPAIGN_MESSAGE_MAX_LENGTH, SMS_SEND_TIMEOUT_SECONDS
from salon_crm.models.campaign import (
    CAMPAIGN_SCHEDULED,
    CAMPAIGN_SENDING,
    CAMPAIGN_SENT,
    CAMPAIGN_TYPE_MANUAL,
    CAMPAIGN_TYPES,
    RECIPIENT_FAILED,
    RECIPIENT_PENDING,
    RECIPIENT_SENT,
    Campaign,
    CampaignRecipient,
)
from salon_crm.services.errors import DataAccessFailure, TransportFailure, ValidationFailure
from salon_crm.services.recipient_resolver import ResolvedRecipient, SelectionRule, resolve_recipients
from salon_crm.sms.base import SMS_STATUS_FAILED, SMS_STATUS_SENT, SmsProvider, SmsSendResult, mask_phone

logger = logging.getLogger(__name__)

NAME_TOKEN = "{name}"
SEND_FAILED_ERROR = "SMS could not be sent"


@dataclass
class DispatchResult:
    campaign_id: int | None
    status: str
    total: int = 0
    sent: int = 0
    failed: int = 0


@dataclass
class DispatchSummary:
    sent: int = 0
    failed: int = 0
    campaigns: list[int] = field(default_factory=list)

    def add(self, result: DispatchResult) -> None:
        self.sent += result.sent
        self.failed += result.failed
        if result.campaign_id is not None:
            self.campaigns.append(result.campaign_id)


def render_message(template: str, customer_name: str | None) -> str:
    return template.replace(NAME_TOKEN, (customer_name or "").strip())


def validate_message(message: str | None, max_length: int = CAMPAIGN_MESSAGE_MAX_LENGTH) -> str:
    cleaned = (message or "").strip()
    if not cleaned:
        raise ValidationFailure("Campaign message must not be empty")
    if len(cleaned) > max_length:
        raise ValidationFailure(f"Campaign message exceeds {max_length} characters")
    return cleaned


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CampaignDispatcher:
    def __init__(
        self,
        transport: SmsProvider,
        *,
        send_timeout_seconds: float | None = SMS_SEND_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        message_max_length: int = CAMPAIGN_MESSAGE_MAX_LENGTH,
    ) -> None:
        self._transport = transport
        self._send_timeout_seconds = send_timeout_seconds
        self._clock = clock
        self._message_max_length = message_max_length

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def initiate(
        self,
        db: Session,
        salon_id: int,
        rule: SelectionRule,
        message: str,
        *,
        name: str | None = None,
        campaign_type: str = CAMPAIGN_TYPE_MANUAL,
        created_by: int | None = None,
        scheduled_at: datetime | None = None,
    ) -> DispatchResult:
        message = validate_message(message, self._message_max_length)
        recipients = resolve_recipients(db, salon_id, rule, now=self._now())
        return self.dispatch_resolved(
            db,
            salon_id,
            recipients,
            message,
            name=name,
            campaign_type=campaign_type,
            created_by=created_by,
            scheduled_at=scheduled_at,
        )

    def dispatch_resolved(
        self,
        db: Session,
        salon_id: int,
        recipients: Sequence[ResolvedRecipient],
        message: str,
        *,
        name: str | None = None,
        campaign_type: str = CAMPAIGN_TYPE_MANUAL,
        created_by: int | None = None,
        scheduled_at: datetime | None = None,
    ) -> DispatchResult:
        message = validate_message(message, self._message_max_length)
        if campaign_type not in CAMPAIGN_TYPES:
            raise ValidationFailure(f"Unknown campaign type: {campaign_type}")

        now = self._now()
        scheduled_at = _as_utc(scheduled_at) if scheduled_at is not None else None
        deferred = scheduled_at is not None and scheduled_at > now

        campaign = self._create_campaign(
            db,
            salon_id=salon_id,
            recipients=recipients,
            message=message,
            name=name or f"{campaign_type.title()} campaign {now.date().isoformat()}",
            campaign_type=campaign_type,
            created_by=created_by,
            scheduled_at=scheduled_at,
            deferred=deferred,
            now=now,
        )

        if not recipients:
            logger.info("Campaign %s has no recipients; marked as sent", campaign.id, extra={"campaign_id": campaign.id})
            return DispatchResult(campaign_id=campaign.id, status=CAMPAIGN_SENT)

        if deferred:
            logger.info(
                "Campaign %s scheduled for %s with %s recipients",
                campaign.id,
                scheduled_at.isoformat(),
                len(recipients),
                extra={"campaign_id": campaign.id},
            )
            return DispatchResult(campaign_id=campaign.id, status=CAMPAIGN_SCHEDULED, total=len(recipients))

        return self._send_campaign(db, campaign, list(campaign.recipients))

    def send_pending(self, db: Session, salon_id: int, *, now: datetime | None = None) -> DispatchSummary:
        now = _as_utc(now) if now is not None else self._now()
        try:
            due_ids = [
                row.id
                for row in db.query(Campaign.id)
                .filter(
                    Campaign.salon_id == salon_id,
                    Campaign.status == CAMPAIGN_SCHEDULED,
                    Campaign.scheduled_at.isnot(None),
                    Campaign.scheduled_at <= now,
                )
                .order_by(Campaign.scheduled_at.asc(), Campaign.id.asc())
                .all()
            ]
        except SQLAlchemyError as exc:
            db.rollback()
            raise DataAccessFailure("Failed to load scheduled campaigns") from exc

        summary = DispatchSummary()
        for campaign_id in due_ids:
            if not self._claim(db, salon_id, campaign_id):
                logger.info("Campaign %s already claimed by another run", campaign_id, extra={"campaign_id": campaign_id})
                continue

            try:
                campaign = db.get(Campaign, campaign_id)
                pending = (
                    db.query(CampaignRecipient)
                    .filter(
                        CampaignRecipient.campaign_id == campaign_id,
                        CampaignRecipient.status == RECIPIENT_PENDING,
                    )
                    .order_by(CampaignRecipient.id.asc())
                    .all()
                )
            except SQLAlchemyError:
                logger.exception("Failed to load recipients for campaign %s", campaign_id, extra={"campaign_id": campaign_id})
                db.rollback()
                self._release(db, campaign_id)
                continue

            summary.add(self._send_campaign(db, campaign, pending))
        return summary

    def _create_campaign(
        self,
        db: Session,
        *,
        salon_id: int,
        recipients: Sequence[ResolvedRecipient],
        message: str,
        name: str,
        campaign_type: str,
        created_by: int | None,
        scheduled_at: datetime | None,
        deferred: bool,
        now: datetime,
    ) -> Campaign:
        if not recipients:
            status = CAMPAIGN_SENT
        elif deferred:
            status = CAMPAIGN_SCHEDULED
        else:
            status = CAMPAIGN_SENDING

        campaign = Campaign(
            salon_id=salon_id,
            name=name[:200],
            message=message,
            campaign_type=campaign_type,
            status=status,
            scheduled_at=scheduled_at,
            created_by=created_by,
            sent_at=now if status == CAMPAIGN_SENT else None,
        )
        campaign.recipients = [
            CampaignRecipient(
                customer=recipient.customer,
                phone=recipient.phone,
                status=RECIPIENT_PENDING,
            )
            for recipient in recipients
        ]

        # Campaign and recipients share one commit.
        try:
            db.add(campaign)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to create campaign for salon %s", salon_id)
            raise DataAccessFailure("Failed to create campaign") from exc

        db.refresh(campaign)
        return campaign

    def _send_campaign(
        self,
        db: Session,
        campaign: Campaign,
        recipients: Iterable[CampaignRecipient],
    ) -> DispatchResult:
        campaign_id = campaign.id
        result = DispatchResult(campaign_id=campaign_id, status=CAMPAIGN_SENDING)
        logger.info("Dispatching campaign %s", campaign_id, extra={"campaign_id": campaign_id})

        try:
            for recipient in recipients:
                if recipient.status != RECIPIENT_PENDING:
                    continue
                result.total += 1
                customer_name = recipient.customer.full_name if recipient.customer is not None else ""
                try:
                    self._deliver(recipient.phone, render_message(campaign.message, customer_name))
                except TransportFailure as exc:
                    recipient.status = RECIPIENT_FAILED
                    recipient.error_message = SEND_FAILED_ERROR
                    result.failed += 1
                    logger.warning(
                        "Campaign recipient failed phone=%s reason=%s",
                        exc.phone,
                        exc.reason,
                        extra={"campaign_id": campaign_id, "recipient_id": recipient.id},
                    )
                else:
                    recipient.status = RECIPIENT_SENT
                    recipient.sent_at = self._now()
                    recipient.error_message = None
                    result.sent += 1
                self._commit(db, f"recipient {recipient.id}")

            campaign.status = CAMPAIGN_SENT
            campaign.sent_at = self._now()
            self._commit(db, f"campaign {campaign_id}")
        except DataAccessFailure:
            # Recipients still PENDING are picked up by the next scheduled run.
            logger.exception(
                "Campaign %s interrupted after sent=%s failed=%s",
                campaign_id,
                result.sent,
                result.failed,
                extra={"campaign_id": campaign_id},
            )
            self._release(db, campaign_id, retry_at=self._now())
            result.status = CAMPAIGN_SCHEDULED
            return result

        result.status = CAMPAIGN_SENT
        logger.info(
            "Campaign %s finished total=%s sent=%s failed=%s",
            campaign.id,
            result.total,
            result.sent,
            result.failed,
            extra={"campaign_id": campaign.id},
        )
        return result

    def _deliver(self, phone: str, text: str) -> None:
        """Send one SMS or raise TransportFailure."""
        outcome = self._attempt(phone, text)
        if outcome.status != SMS_STATUS_SENT:
            raise TransportFailure(mask_phone(phone), outcome.error or "unknown error")

    def _attempt(self, phone: str, text: str) -> SmsSendResult:
        if not phone:
            return SmsSendResult(status=SMS_STATUS_FAILED, error="missing phone")
        if not self._send_timeout_seconds or self._send_timeout_seconds <= 0:
            try:
                return _normalize_result(self._transport.send(phone, text))
            except Exception as exc:
                return SmsSendResult(status=SMS_STATUS_FAILED, error=str(exc) or type(exc).__name__)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sms-send")
        try:
            future = executor.submit(self._transport.send, phone, text)
            return _normalize_result(future.result(timeout=self._send_timeout_seconds))
        except FutureTimeoutError:
            return SmsSendResult(
                status=SMS_STATUS_FAILED,
                error=f"timed out after {self._send_timeout_seconds}s",
            )
        except Exception as exc:
            return SmsSendResult(status=SMS_STATUS_FAILED, error=str(exc) or type(exc).__name__)
        finally:
            # A stalled transport call is abandoned, not awaited.
            executor.shutdown(wait=False, cancel_futures=True)

    def _claim(self, db: Session, salon_id: int, campaign_id: int) -> bool:
        try:
            claimed = (
                db.query(Campaign)
                .filter(
                    Campaign.id == campaign_id,
                    Campaign.salon_id == salon_id,
                    Campaign.status == CAMPAIGN_SCHEDULED,
                )
                .update({Campaign.status: CAMPAIGN_SENDING}, synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DataAccessFailure(f"Failed to claim campaign {campaign_id}") from exc
        return claimed == 1

    def _release(self, db: Session, campaign_id: int, *, retry_at: datetime | None = None) -> None:
        values: dict[Any, Any] = {Campaign.status: CAMPAIGN_SCHEDULED}
        if retry_at is not None:
            # Campaigns sent immediately have no scheduled_at; give them one so they are due.
            values[Campaign.scheduled_at] = func.coalesce(Campaign.scheduled_at, retry_at)
        try:
            (
                db.query(Campaign)
                .filter(Campaign.id == campaign_id, Campaign.status == CAMPAIGN_SENDING)
                .update(values, synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DataAccessFailure(f"Failed to release campaign {campaign_id}") from exc
        logger.warning("Campaign %s returned to SCHEDULED for retry", campaign_id, extra={"campaign_id": campaign_id})

    def _commit(self, db: Session, what: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise DataAccessFailure(f"Failed to persist {what}") from exc


def _normalize_result(result: Any) -> SmsSendResult:
    if isinstance(result, SmsSendResult):
        return result
    if result is False:
        return SmsSendResult(status=SMS_STATUS_FAILED, error="transport reported failure")
    return SmsSendResult(status=SMS_STATUS_SENT)
