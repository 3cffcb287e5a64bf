"""
Booking executor: turns a complete intent into exactly one BookingResult.

Order of attempts for one intent:
1. Validation. Incomplete or invalid intents are rejected before any
   collaborator is called.
2. Primary path. Paid kinds request a single hosted checkout link; kinds
   without payment write their request row.
3. Fallback. A failed checkout is recorded as a pending row. A
   row-level-security refusal is retried once without the user id.
4. Last resort. When nothing could be written the user still gets a
   successful, clearly labelled simulated result.

``execute`` never raises for collaborator failures, whatever their type;
the outcome is carried by ``BookingResult.status``.
"""

from typing import Any, Optional

from booking_pipeline.booking.registry import get_strategy
from booking_pipeline.booking.strategies import BookingStrategy
from booking_pipeline.config import settings
from booking_pipeline.logging_context import get_session_logger
from booking_pipeline.schemas.booking_schema import BookingIntent, BookingResult, BookingStatus
from booking_pipeline.schemas.profile_schema import UserProfile
from booking_pipeline.tools.database import RowInsertError, RowStore
from booking_pipeline.tools.payments import PaymentLinkError, PaymentLinkService

logger = get_session_logger(__name__)


class BookingExecutor:
    """Executes booking intents against the payment and row-store collaborators."""

    def __init__(self, payments: PaymentLinkService, rows: RowStore) -> None:
        self._payments = payments
        self._rows = rows

    async def execute(
        self,
        intent: BookingIntent,
        user_id: Optional[str] = None,
        profile: Optional[UserProfile] = None,
        return_page: Optional[str] = None,
    ) -> BookingResult:
        strategy = get_strategy(intent.kind)

        rejection = strategy.validate(intent)
        if rejection:
            logger.info("Rejected %s intent: missing=%s", intent.kind.value, intent.missing_fields())
            return BookingResult(
                success=False, message=rejection, status=BookingStatus.REJECTED, kind=intent.kind
            )

        contact = strategy.contact(intent, profile)
        request = strategy.checkout_request(
            intent, contact, user_id, return_page or settings.payment.chat_page_path
        )

        if request is None:
            row = await self._insert(strategy, strategy.record(intent, contact, user_id))
            if row is not None:
                return self._result(
                    strategy, BookingStatus.CONFIRMED,
                    strategy.confirmed_message(intent, contact, None), record_id=row.get("id"),
                )
            return self._simulated(strategy, intent, contact)

        try:
            session = await self._payments.create_checkout(request)
        except PaymentLinkError as exc:
            logger.warning("Checkout link failed for %s, recording row instead: %s",
                           intent.kind.value, exc)
        except Exception:
            logger.exception("Payment service crashed for %s, recording row instead",
                             intent.kind.value)
        else:
            logger.info("Checkout link created for %s (%s cents)",
                        intent.kind.value, request.amount_cents)
            return self._result(
                strategy, BookingStatus.CONFIRMED,
                strategy.confirmed_message(intent, contact, session.url),
                checkout_url=session.url, record_id=session.session_id,
            )

        row = await self._insert(strategy, strategy.record(intent, contact, user_id))
        if row is not None:
            return self._result(
                strategy, BookingStatus.PENDING,
                strategy.pending_message(intent, contact), record_id=row.get("id"),
            )
        return self._simulated(strategy, intent, contact)

    async def _insert(
        self, strategy: BookingStrategy, record: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Insert ``record``; retry once without the user id on an RLS refusal."""
        try:
            return await self._rows.insert(strategy.table, record)
        except RowInsertError as exc:
            if not exc.is_authorization_error:
                logger.error("Insert into %s failed: %s", strategy.table, exc)
                return None
            logger.warning("Insert into %s refused (code=%s), retrying without user id",
                           strategy.table, exc.code)
        except Exception:
            logger.exception("Row store crashed on insert into %s", strategy.table)
            return None

        try:
            return await self._rows.insert(strategy.table, {**record, "user_id": None})
        except RowInsertError as exc:
            logger.error("Retry insert into %s failed: %s", strategy.table, exc)
            return None
        except Exception:
            logger.exception("Row store crashed on retry insert into %s", strategy.table)
            return None

    def _simulated(self, strategy: BookingStrategy, intent: BookingIntent, contact) -> BookingResult:
        logger.error("All booking paths failed for %s, returning simulated result",
                     intent.kind.value)
        return self._result(
            strategy, BookingStatus.SIMULATED, strategy.simulated_message(intent, contact)
        )

    @staticmethod
    def _result(
        strategy: BookingStrategy,
        status: BookingStatus,
        message: str,
        checkout_url: Optional[str] = None,
        record_id: Any = None,
    ) -> BookingResult:
        return BookingResult(
            success=True,
            message=message,
            status=status,
            kind=strategy.kind,
            checkout_url=checkout_url,
            record_id=None if record_id is None else str(record_id),
        )
