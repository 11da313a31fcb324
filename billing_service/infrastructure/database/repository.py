# billing_service/infrastructure/database/repository.py

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

from billing_service.config.logger_config import log
from billing_service.core.exceptions import DatabaseError
from billing_service.domain.models import Payment, PaymentStatus


class PaymentRepository:
    """
    Record store for payments, keyed by the Billplz bill ID.
    Every failure of the underlying session is rolled back and raised as DatabaseError.
    """

    def __init__(self, session: Session):
        self.session = session

    def add(self, payment: Payment) -> Payment:
        """Insert a new payment record and return it refreshed."""
        try:
            self.session.add(payment)
            self.session.commit()
            self.session.refresh(payment)
            return payment
        except Exception as e:
            self.session.rollback()
            log.critical(
                "Failed to insert payment record",
                payment_id=str(payment.id),
                error=str(e),
                exc_info=True,
            )
            raise DatabaseError("Failed to save payment record") from e

    def save(self, payment: Payment) -> Payment:
        """Persist changes made to an already loaded record."""
        try:
            self.session.add(payment)
            self.session.commit()
            self.session.refresh(payment)
            return payment
        except Exception as e:
            self.session.rollback()
            log.critical(
                "Failed to update payment record",
                payment_id=str(payment.id),
                bill_id=payment.bill_id,
                error=str(e),
                exc_info=True,
            )
            raise DatabaseError("Failed to update payment record") from e

    def delete(self, payment: Payment) -> None:
        try:
            self.session.delete(payment)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            log.critical(
                "Failed to delete payment record",
                payment_id=str(payment.id),
                error=str(e),
                exc_info=True,
            )
            raise DatabaseError("Failed to delete payment record") from e

    def get_by_bill_id(self, bill_id: str) -> Optional[Payment]:
        try:
            return self.session.exec(
                select(Payment).where(Payment.bill_id == bill_id)
            ).first()
        except Exception as e:
            log.critical(
                "Database error during payment lookup", bill_id=bill_id, error=str(e)
            )
            raise DatabaseError(
                "Failed to retrieve payment due to internal error"
            ) from e

    def apply_status(
        self,
        bill_id: str,
        status: PaymentStatus,
        transaction_id: str,
        paid_at: Optional[datetime],
        updated_at: datetime,
    ) -> bool:
        """
        Move a pending record to `status` in a single conditional UPDATE.

        Returns:
            True if the record was still pending and has been updated,
            False if another writer already moved it out of pending.
        """
        statement = (
            update(Payment)
            .where(Payment.bill_id == bill_id)
            .where(Payment.status == PaymentStatus.PENDING.value)
            .values(
                status=status.value,
                transaction_id=transaction_id,
                paid_at=paid_at,
                updated_at=updated_at,
            )
        )
        try:
            result = self.session.execute(statement)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            log.critical(
                "Failed to apply payment status",
                bill_id=bill_id,
                status=status.value,
                error=str(e),
                exc_info=True,
            )
            raise DatabaseError("Failed to update payment status") from e

        # Loaded instances are stale after a bulk UPDATE
        self.session.expire_all()
        return result.rowcount == 1

    def record_bill_reference(self, payment_id: UUID, bill_id: str, bill_url: str) -> bool:
        """
        Write only the Billplz reference onto a record, leaving its status alone.

        Used when a full update failed after Billplz accepted the bill, so the
        dangling record can still be matched to its bill. Never raises.
        """
        statement = (
            update(Payment)
            .where(Payment.id == payment_id)
            .values(bill_id=bill_id, bill_url=bill_url)
        )
        try:
            # Drop whatever the failed update left pending in the session
            self.session.rollback()
            result = self.session.execute(statement)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            log.critical(
                "Failed to record bill reference on payment",
                payment_id=str(payment_id),
                bill_id=bill_id,
                error=str(e),
                exc_info=True,
            )
            return False

        self.session.expire_all()
        return result.rowcount == 1

    def list_by_customer_email(self, customer_email: str, limit: int) -> List[Payment]:
        """Return the customer's bills, newest first, excluding provisional records."""
        query = (
            select(Payment)
            .where(Payment.customer_email == customer_email)
            .where(Payment.status != PaymentStatus.INITIATING.value)
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        try:
            return list(self.session.exec(query).all())
        except Exception as e:
            log.critical(
                "Database error during payment history lookup",
                error=str(e),
                exc_info=True,
            )
            raise DatabaseError(
                "Failed to list payments due to internal error"
            ) from e
