"""Structured audit logger for credit and order lifecycle events.

Emits structured log entries via structlog.  Every entry carries an
``audit: true`` flag so production log pipelines can filter on it easily.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for platform events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Credit event
    # ------------------------------------------------------------------

    def log_credit_event(
        self,
        user_id,
        delta: int,
        balance_after: int,
        usage_type: str,
        generation_id=None,
    ) -> None:
        """Log a ledger entry (debit for generations and transforms, credit for top-ups)."""
        log.info(
            "audit_event",
            event_type="credit_event",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            delta=delta,
            balance_after=balance_after,
            usage_type=usage_type,
            generation_id=str(generation_id) if generation_id else None,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Order status change
    # ------------------------------------------------------------------

    def log_order_transition(
        self,
        order_id,
        seller_id,
        action: str,
        from_status: str,
        to_status: str,
        payment_status: str,
    ) -> None:
        """Record a seller-driven order status change."""
        log.info(
            "audit_event",
            event_type="order_transition",
            timestamp=datetime.now(timezone.utc).isoformat(),
            order_id=str(order_id),
            seller_id=str(seller_id),
            action=action,
            from_status=from_status,
            to_status=to_status,
            payment_status=payment_status,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def log_order_placed(
        self,
        order_id,
        product_id,
        seller_id,
        buyer_id,
        amount_total_cents: int,
    ) -> None:
        log.info(
            "audit_event",
            event_type="order_placed",
            timestamp=datetime.now(timezone.utc).isoformat(),
            order_id=str(order_id),
            product_id=str(product_id),
            seller_id=str(seller_id),
            buyer_id=str(buyer_id) if buyer_id else None,
            amount_total_cents=amount_total_cents,
            audit=True,
        )


audit = AuditLogger()
