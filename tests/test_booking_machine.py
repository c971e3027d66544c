from datetime import timedelta
from decimal import Decimal

import pytest

from core.errors import InvalidTransition, PermissionDenied
from core.utils import as_utc
from models import BookingStatus, BookingMessage, Notification, Payment, ReferralCreditAward
from services.bookings import (
    ALLOWED_TRANSITIONS, TERMINAL_STATUSES, transition_booking, deliver_booking,
    auto_accept_deliveries, booking_to_dict, can_transition, release_at
)
from conftest import make_user, make_booking, days_ago

S = BookingStatus


class TestTransitionTable:

    @pytest.mark.parametrize("terminal", [S.RELEASED, S.REFUNDED, S.CANCELED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal in TERMINAL_STATUSES
        assert ALLOWED_TRANSITIONS[terminal] == set()
        for target in S:
            assert not can_transition(terminal.value, target.value)

    def test_happy_path_edges(self):
        path = [S.DRAFT, S.PAID, S.IN_PROGRESS, S.DELIVERED, S.ACCEPTED, S.RELEASED]
        for current, target in zip(path, path[1:]):
            assert can_transition(current.value, target.value)

    def test_no_skipping_ahead(self):
        assert not can_transition("draft", "delivered")
        assert not can_transition("paid", "released")
        assert not can_transition("draft", "disputed")
        assert not can_transition("bogus", "paid")


class TestTransitionRules:

    def test_admin_can_force_refund(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="in_progress")
        transition_booking(db, booking, S.REFUNDED, marketplace["admin"])
        db.commit()
        assert booking.status == "refunded"
        assert booking.refunded_at is not None

    def test_terminal_booking_cannot_change(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="released")
        with pytest.raises(InvalidTransition):
            transition_booking(db, booking, S.DISPUTED, marketplace["admin"])
        assert booking.status == "released"

    def test_client_cannot_start_work(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="paid")
        with pytest.raises(PermissionDenied):
            transition_booking(db, booking, S.IN_PROGRESS, marketplace["client"])

    def test_creator_cannot_accept_own_delivery(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="delivered")
        with pytest.raises(PermissionDenied):
            transition_booking(db, booking, S.ACCEPTED, marketplace["creator_user"])

    def test_client_can_only_cancel_drafts(self, db, marketplace):
        draft = make_booking(db, marketplace["client"], marketplace["service"])
        transition_booking(db, draft, S.CANCELED, marketplace["client"])
        assert draft.status == "canceled"

        paid = make_booking(db, marketplace["client"], marketplace["service"], status="paid")
        with pytest.raises(PermissionDenied):
            transition_booking(db, paid, S.CANCELED, marketplace["client"])

    def test_outsider_cannot_dispute(self, db, marketplace):
        stranger = make_user(db, "stranger")
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="paid")
        with pytest.raises(PermissionDenied):
            transition_booking(db, booking, S.DISPUTED, stranger)

    def test_status_change_notifies(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="accepted")
        transition_booking(db, booking, S.RELEASED)
        db.commit()
        note = db.query(Notification).filter(Notification.user_id == "creator1").one()
        assert note.type == "escrow_released"
        assert booking.released_at is not None


class TestDelivery:

    def test_deliver_from_paid_starts_and_delivers(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="paid")
        deliver_booking(db, booking, marketplace["creator_user"], ["https://files.example/report.pdf"], "Done!")
        db.commit()

        assert booking.status == "delivered"
        assert booking.work_started_at is not None
        assert booking.delivered_at is not None
        assert booking.deliverable_urls == ["https://files.example/report.pdf"]

        message = db.query(BookingMessage).filter(BookingMessage.booking_id == booking.id).one()
        assert message.to_user_id == "client1"
        assert "Done!" in message.body

    def test_release_at_is_three_days_after_delivery(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="delivered",
                               delivered_at=days_ago(1))
        assert release_at(booking) - as_utc(booking.delivered_at) == timedelta(days=3)


class TestReferralAward:

    def test_award_once_per_referred_user(self, db, marketplace):
        referrer = make_user(db, "referrer1")
        client_user = make_user(db, "referred1", referred_by=referrer.id)
        service = marketplace["service"]

        first = make_booking(db, client_user, service, status="delivered")
        transition_booking(db, first, S.ACCEPTED, client_user)
        db.commit()

        second = make_booking(db, client_user, service, status="delivered")
        transition_booking(db, second, S.ACCEPTED, client_user)
        db.commit()

        db.refresh(referrer)
        assert referrer.referral_credits == Decimal("1.00")
        assert referrer.lifetime_referral_credits == Decimal("1.00")
        assert db.query(ReferralCreditAward).count() == 1
        assert second.status == "accepted"

    def test_no_referrer_no_award(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="delivered")
        transition_booking(db, booking, S.ACCEPTED, marketplace["client"])
        db.commit()
        assert db.query(ReferralCreditAward).count() == 0


class TestAutoAccept:

    def test_only_stale_deliveries_are_accepted(self, db, marketplace):
        client_user, service = marketplace["client"], marketplace["service"]
        stale = make_booking(db, client_user, service, status="delivered", delivered_at=days_ago(4))
        fresh = make_booking(db, client_user, service, status="delivered", delivered_at=days_ago(1))
        paid = make_booking(db, client_user, service, status="paid")

        accepted = auto_accept_deliveries(db)
        db.commit()

        assert accepted == [stale.id]
        db.refresh(stale)
        db.refresh(fresh)
        db.refresh(paid)
        assert stale.status == "accepted"
        assert stale.accepted_at is not None
        assert fresh.status == "delivered"
        assert paid.status == "paid"

    def test_auto_accept_awards_referral_like_manual_acceptance(self, db, marketplace):
        referrer = make_user(db, "referrer2")
        client_user = make_user(db, "referred2", referred_by=referrer.id)
        make_booking(db, client_user, marketplace["service"], status="delivered", delivered_at=days_ago(5))

        auto_accept_deliveries(db)
        db.commit()

        db.refresh(referrer)
        assert referrer.referral_credits == Decimal("1.00")


class TestReadModel:

    def test_draft_with_verified_payment_is_eligible_for_paid(self, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        assert booking_to_dict(booking)["eligible_for_paid"] is False

        db.add(Payment(
            user_id="client1", creator_id="creator1", booking_id=booking.id, payment_type="service_booking",
            network="base", currency="USDC", amount=booking.usdc_amount, admin_wallet_address="0xabc",
            tx_hash="0x" + "c" * 64, status="verified", fee_rate=Decimal("0.15"),
        ))
        db.commit()
        db.refresh(booking)

        data = booking_to_dict(booking)
        assert data["status"] == "draft"
        assert data["eligible_for_paid"] is True
        assert data["creator_payout"] == 85.0
        assert data["platform_fee"] == 15.0
