"""Tests for structured audit logging."""

from __future__ import annotations

import uuid
from unittest.mock import patch

from merchforge.services.audit_logger import AuditLogger


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FAKE_USER_A = uuid.UUID("00000000-0000-0000-0000-000000000001")
FAKE_USER_B = uuid.UUID("00000000-0000-0000-0000-000000000002")
FAKE_ORDER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000d1")
FAKE_PRODUCT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000e1")
FAKE_GENERATION_ID = uuid.UUID("00000000-0000-0000-0000-000000000077")


# ---------------------------------------------------------------------------
# 1. test_log_credit_event
# ---------------------------------------------------------------------------

def test_log_credit_event():
    logger = AuditLogger()

    with patch("merchforge.services.audit_logger.log") as mock_log:
        logger.log_credit_event(FAKE_USER_A, -2, 8, "UPSCALE", FAKE_GENERATION_ID)

        mock_log.info.assert_called_once()
        call_kwargs = mock_log.info.call_args[1]

        assert call_kwargs["event_type"] == "credit_event"
        assert call_kwargs["audit"] is True
        assert call_kwargs["user_id"] == str(FAKE_USER_A)
        assert call_kwargs["delta"] == -2
        assert call_kwargs["balance_after"] == 8
        assert call_kwargs["generation_id"] == str(FAKE_GENERATION_ID)
        assert "timestamp" in call_kwargs


def test_log_credit_event_without_generation():
    with patch("merchforge.services.audit_logger.log") as mock_log:
        AuditLogger().log_credit_event(FAKE_USER_A, 25, 75, "TOP_UP")

        assert mock_log.info.call_args[1]["generation_id"] is None


# ---------------------------------------------------------------------------
# 2. test_log_order_transition
# ---------------------------------------------------------------------------

def test_log_order_transition():
    with patch("merchforge.services.audit_logger.log") as mock_log:
        AuditLogger().log_order_transition(
            FAKE_ORDER_ID, FAKE_USER_B, "CANCEL_ORDER", "SHIPPED", "CANCELED", "REFUNDED",
        )

        call_kwargs = mock_log.info.call_args[1]
        assert call_kwargs["event_type"] == "order_transition"
        assert call_kwargs["order_id"] == str(FAKE_ORDER_ID)
        assert call_kwargs["seller_id"] == str(FAKE_USER_B)
        assert call_kwargs["from_status"] == "SHIPPED"
        assert call_kwargs["to_status"] == "CANCELED"
        assert call_kwargs["payment_status"] == "REFUNDED"


# ---------------------------------------------------------------------------
# 3. test_log_order_placed
# ---------------------------------------------------------------------------

def test_log_order_placed_guest():
    with patch("merchforge.services.audit_logger.log") as mock_log:
        AuditLogger().log_order_placed(FAKE_ORDER_ID, FAKE_PRODUCT_ID, FAKE_USER_B, None, 7800)

        call_kwargs = mock_log.info.call_args[1]
        assert call_kwargs["event_type"] == "order_placed"
        assert call_kwargs["buyer_id"] is None
        assert call_kwargs["amount_total_cents"] == 7800
        assert call_kwargs["audit"] is True
