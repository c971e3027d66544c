from decimal import Decimal

from models import AuditLog, Booking, Creator, Notification, Payment, PlatformWallet
from conftest import as_user, make_booking, ADMIN_KEY, ETH_TX, ETH_TX_2, SOLANA_TX


def submit(client, uid, booking_id=None, network="base", tx_hash=ETH_TX, **extra):
    body = {"network": network, "tx_hash": tx_hash, "booking_id": booking_id, **extra}
    return client.post("/payments/", json=body, headers=as_user(uid))


class TestSubmitPayment:

    def test_pending_payment_targets_platform_wallet(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])

        res = submit(client, "client1", booking.id)
        assert res.status_code == 201
        payment = res.json()["payment"]
        assert payment["status"] == "pending"
        assert payment["amount"] == 100.0
        assert payment["currency"] == "USDC"
        assert payment["explorer_url"] == f"https://basescan.org/tx/{ETH_TX}"

        wallet = db.query(PlatformWallet).filter(PlatformWallet.network == "base").one()
        assert payment["admin_wallet_address"] == wallet.wallet_address

        db.refresh(booking)
        assert booking.status == "draft"
        assert booking.chain == "base"
        assert booking.tx_hash == ETH_TX

        admin_notes = db.query(Notification).filter(Notification.user_id == "admin1").all()
        assert [n.type for n in admin_notes] == ["payment_submitted"]

    def test_bad_hash_is_rejected_before_any_row(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])

        res = submit(client, "client1", booking.id, network="ethereum", tx_hash="abc123")
        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_TX_HASH"
        assert db.query(Payment).count() == 0

    def test_unsupported_network(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        res = submit(client, "client1", booking.id, network="tron")
        assert res.status_code == 400
        assert res.json()["code"] == "UNSUPPORTED_NETWORK"

    def test_duplicate_hash(self, client, db, marketplace, wallets):
        first = make_booking(db, marketplace["client"], marketplace["service"])
        second = make_booking(db, marketplace["client"], marketplace["service"])

        assert submit(client, "client1", first.id).status_code == 201
        res = submit(client, "client1", second.id)
        assert res.status_code == 409
        assert res.json()["code"] == "DUPLICATE_ENTRY"
        assert db.query(Payment).count() == 1

    def test_one_open_payment_per_booking(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        assert submit(client, "client1", booking.id).status_code == 201

        res = submit(client, "client1", booking.id, tx_hash=ETH_TX_2)
        assert res.status_code == 409
        assert res.json()["code"] == "PAYMENT_ALREADY_SUBMITTED"

    def test_cannot_pay_someone_elses_booking(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        res = submit(client, "creator1", booking.id)
        assert res.status_code == 403

    def test_rate_limited_after_three_attempts(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        for _ in range(3):
            assert submit(client, "client1", booking.id, tx_hash="nope").status_code == 400

        res = submit(client, "client1", booking.id)
        assert res.status_code == 429
        assert res.json()["code"] == "RATE_LIMITED"
        assert db.query(Payment).count() == 0

    def test_missing_wallet(self, client, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        res = submit(client, "client1", booking.id, network="solana", tx_hash=SOLANA_TX)
        assert res.status_code == 400
        assert res.json()["code"] == "WALLET_NOT_CONFIGURED"


class TestAdminReview:

    def _pending(self, client, db, marketplace):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        payment_id = submit(client, "client1", booking.id).json()["payment"]["id"]
        return booking, payment_id

    def test_verify_moves_booking_to_paid(self, client, db, marketplace, wallets):
        booking, payment_id = self._pending(client, db, marketplace)

        res = client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1"))
        assert res.status_code == 200
        assert res.json()["payment"]["status"] == "verified"

        payment = db.get(Payment, payment_id)
        db.refresh(payment)
        assert payment.verified_by == "admin1"
        assert payment.verified_at is not None
        assert payment.fee_rate == Decimal("0.15")

        db.refresh(booking)
        assert booking.status == "paid"

        types = {n.type for n in db.query(Notification).filter(Notification.user_id == "client1")}
        assert "payment_verified" in types

    def test_review_only_from_pending(self, client, db, marketplace, wallets):
        _, payment_id = self._pending(client, db, marketplace)
        client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1"))

        res = client.post(f"/admin/payments/{payment_id}/reject", json={"reason": "late"}, headers=as_user("admin1"))
        assert res.status_code == 409
        assert res.json()["code"] == "INVALID_STATUS_TRANSITION"

    def test_reject_keeps_booking_draft_and_allows_resubmission(self, client, db, marketplace, wallets):
        booking, payment_id = self._pending(client, db, marketplace)

        res = client.post(f"/admin/payments/{payment_id}/reject", json={"reason": "not found on chain"},
                          headers=as_user("admin1"))
        assert res.status_code == 200
        assert res.json()["payment"]["rejection_reason"] == "not found on chain"

        db.refresh(booking)
        assert booking.status == "draft"
        assert submit(client, "client1", booking.id, tx_hash=ETH_TX_2).status_code == 201

    def test_non_admin_cannot_review(self, client, db, marketplace, wallets):
        _, payment_id = self._pending(client, db, marketplace)
        res = client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("client1"))
        assert res.status_code == 403
        assert res.json()["code"] == "PERMISSION_DENIED"

    def test_list_filters_by_status(self, client, db, marketplace, wallets):
        self._pending(client, db, marketplace)
        res = client.get("/admin/payments/?status=pending", headers=as_user("admin1"))
        assert res.status_code == 200
        assert len(res.json()) == 1
        assert client.get("/admin/payments/?status=verified", headers=as_user("admin1")).json() == []


class TestTierPayment:

    def test_verified_tier_payment_upgrades_creator(self, client, db, marketplace, wallets):
        res = client.post("/payments/", json={
            "network": "base", "tx_hash": ETH_TX, "payment_type": "creator_tier", "tier": "premium"
        }, headers=as_user("creator1"))
        assert res.status_code == 201
        payment = res.json()["payment"]
        assert payment["amount"] == 25.0

        client.post(f"/admin/payments/{payment['id']}/verify", headers=as_user("admin1"))
        creator = db.query(Creator).filter(Creator.user_id == "creator1").one()
        db.refresh(creator)
        assert creator.tier == "premium"

    def test_lower_or_same_tier_is_rejected(self, client, db, marketplace, wallets):
        marketplace["creator"].tier = "enterprise"
        db.commit()

        res = client.post("/payments/", json={
            "network": "base", "tx_hash": ETH_TX, "payment_type": "creator_tier", "tier": "premium"
        }, headers=as_user("creator1"))
        assert res.status_code == 400
        assert res.json()["code"] == "TIER_NOT_AN_UPGRADE"
        assert db.query(Payment).count() == 0

    def test_verification_never_downgrades(self, client, db, marketplace, wallets):
        payment_id = client.post("/payments/", json={
            "network": "base", "tx_hash": ETH_TX, "payment_type": "creator_tier", "tier": "premium"
        }, headers=as_user("creator1")).json()["payment"]["id"]

        # upgraded through another channel while the premium payment waited for review
        marketplace["creator"].tier = "enterprise"
        db.commit()

        assert client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1")).status_code == 200
        creator = db.query(Creator).filter(Creator.user_id == "creator1").one()
        db.refresh(creator)
        assert creator.tier == "enterprise"

    def test_clients_cannot_buy_tiers(self, client, db, marketplace, wallets):
        res = client.post("/payments/", json={
            "network": "base", "tx_hash": ETH_TX, "payment_type": "creator_tier", "tier": "premium"
        }, headers=as_user("client1"))
        assert res.status_code == 403


class TestPayouts:

    def test_payout_follows_the_escrow_lifecycle(self, client, db, marketplace, wallets):
        booking_id = client.post("/bookings/", json={"service_id": marketplace["service"].id},
                                 headers=as_user("client1")).json()["id"]
        payment_id = submit(client, "client1", booking_id).json()["payment"]["id"]
        assert client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1")).status_code == 200

        delivered = client.post(f"/bookings/{booking_id}/deliver",
                                json={"deliverable_urls": ["https://files.example/a.zip"]},
                                headers=as_user("creator1"))
        assert delivered.json()["status"] == "delivered"

        early = client.post(f"/admin/payments/{payment_id}/payout", json={"payout_tx_hash": ETH_TX_2},
                            headers=as_user("admin1"))
        assert early.status_code == 409
        assert early.json()["code"] == "BOOKING_NOT_RELEASED"

        assert client.post(f"/bookings/{booking_id}/accept", headers=as_user("client1")).json()["status"] == "accepted"

        not_admin = client.post(f"/admin/bookings/{booking_id}/release", headers=as_user("client1"))
        assert not_admin.status_code == 403

        released = client.post(f"/admin/bookings/{booking_id}/release", headers=as_user("admin1"))
        assert released.status_code == 200
        assert released.json()["booking"]["status"] == "released"
        assert released.json()["booking"]["released_at"] is not None

        bad = client.post(f"/admin/payments/{payment_id}/payout", json={"payout_tx_hash": "xyz"},
                          headers=as_user("admin1"))
        assert bad.status_code == 400

        ok = client.post(f"/admin/payments/{payment_id}/payout", json={"payout_tx_hash": ETH_TX_2},
                         headers=as_user("admin1"))
        assert ok.status_code == 200
        assert ok.json()["payment"]["payout_status"] == "completed"

        again = client.post(f"/admin/payments/{payment_id}/payout", json={"payout_tx_hash": "0x" + "d" * 64},
                            headers=as_user("admin1"))
        assert again.status_code == 409

        tracker = client.get("/payments/payouts", headers=as_user("creator1")).json()
        assert tracker["summary"]["paid_out"] == 85.0
        assert tracker["summary"]["pending_payout"] == 0
        assert len(tracker["completed"]) == 1

        actions = [a.action for a in db.query(AuditLog).order_by(AuditLog.id).all()]
        assert "ESCROW_RELEASED" in actions

    def test_release_needs_an_accepted_booking(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        res = client.post(f"/admin/bookings/{booking.id}/release", headers=as_user("admin1"))
        assert res.status_code == 409
        assert db.get(Booking, booking.id).status == "draft"

    def test_scheduler_releases_accepted_bookings(self, client, db, marketplace, wallets):
        booking_id = client.post("/bookings/", json={"service_id": marketplace["service"].id},
                                 headers=as_user("client1")).json()["id"]
        payment_id = submit(client, "client1", booking_id).json()["payment"]["id"]
        client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1"))
        client.post(f"/bookings/{booking_id}/deliver", json={"deliverable_urls": ["https://files.example/a.zip"]},
                    headers=as_user("creator1"))
        client.post(f"/bookings/{booking_id}/accept", headers=as_user("client1"))

        sweep = client.post("/system/escrow/auto-accept", headers={"X-Admin-Key": ADMIN_KEY})
        assert sweep.json()["released_ids"] == [booking_id]

        ok = client.post(f"/admin/payments/{payment_id}/payout", json={"payout_tx_hash": ETH_TX_2},
                         headers=as_user("admin1"))
        assert ok.status_code == 200


class TestAdminRefund:

    def test_refund_paid_booking_without_dispute(self, client, db, marketplace, wallets):
        booking_id = client.post("/bookings/", json={"service_id": marketplace["service"].id},
                                 headers=as_user("client1")).json()["id"]
        payment_id = submit(client, "client1", booking_id).json()["payment"]["id"]
        client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1"))

        bad = client.post(f"/admin/bookings/{booking_id}/refund", json={"refund_tx_hash": "nope"},
                          headers=as_user("admin1"))
        assert bad.status_code == 400
        assert bad.json()["code"] == "INVALID_TX_HASH"
        assert db.get(Booking, booking_id).status == "paid"

        res = client.post(f"/admin/bookings/{booking_id}/refund", json={"refund_tx_hash": ETH_TX_2},
                          headers=as_user("admin1"))
        assert res.status_code == 200
        refunded = res.json()["booking"]
        assert refunded["status"] == "refunded"
        assert refunded["refund_amount"] == 85.0
        assert refunded["refund_tx_hash"] == ETH_TX_2

        again = client.post(f"/admin/bookings/{booking_id}/refund", json={}, headers=as_user("admin1"))
        assert again.status_code == 409

    def test_refund_in_progress_booking(self, client, db, marketplace, wallets):
        booking_id = client.post("/bookings/", json={"service_id": marketplace["service"].id},
                                 headers=as_user("client1")).json()["id"]
        payment_id = submit(client, "client1", booking_id).json()["payment"]["id"]
        client.post(f"/admin/payments/{payment_id}/verify", headers=as_user("admin1"))
        assert client.post(f"/bookings/{booking_id}/start", headers=as_user("creator1")).json()["status"] == "in_progress"

        res = client.post(f"/admin/bookings/{booking_id}/refund", json={}, headers=as_user("admin1"))
        assert res.status_code == 200
        assert res.json()["booking"]["status"] == "refunded"
        assert res.json()["booking"]["refund_tx_hash"] is None

    def test_refund_of_unpaid_draft_is_zero(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"])
        res = client.post(f"/admin/bookings/{booking.id}/refund", json={}, headers=as_user("admin1"))
        assert res.json()["booking"]["refund_amount"] == 0.0

    def test_open_dispute_must_be_resolved_instead(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="in_progress")
        client.post(f"/bookings/{booking.id}/dispute", json={"reason": "Nothing delivered so far"},
                    headers=as_user("client1"))

        res = client.post(f"/admin/bookings/{booking.id}/refund", json={}, headers=as_user("admin1"))
        assert res.status_code == 409
        assert res.json()["code"] == "DISPUTE_OPEN"

    def test_only_admins_refund(self, client, db, marketplace, wallets):
        booking = make_booking(db, marketplace["client"], marketplace["service"], status="paid")
        res = client.post(f"/admin/bookings/{booking.id}/refund", json={}, headers=as_user("client1"))
        assert res.status_code == 403


def test_breakdown_and_explorer_endpoints(client, db, marketplace):
    res = client.get("/payments/breakdown?amount=100", headers=as_user("client1"))
    assert res.json()["creator_payout"] == 85.0
    assert res.json()["platform_fee"] == 15.0

    link = client.get("/payments/explorer?network=SUI&tx_hash=abc", headers=as_user("client1")).json()
    assert link["url"] == "https://suiscan.xyz/mainnet/tx/abc"

    assert client.get("/payments/explorer?network=tron&tx_hash=abc", headers=as_user("client1")).status_code == 400
