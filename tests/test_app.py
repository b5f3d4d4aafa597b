import io
import unittest
from contextlib import redirect_stdout
from datetime import timedelta

from app import create_app
from config import TestConfig
from create_admin import create_admin
from create_admin import main as create_admin_main
from models import db
from models.admin import Admin
from models.admin_notification import AdminNotification
from models.wallet_transaction import WalletTransaction, utcnow
from utils.auth_utils import generate_admin_reset_token, verify_admin_reset_token
from utils.transaction_store import SQLAlchemyTransactionStore
from utils.transition_policy import POLICY_MESSAGE, drop_transition_policy
from utils.wallet_errors import StoreError, TransactionNotFound


class AppTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(TestConfig)
        self.ctx = self.app.app_context()
        self.ctx.push()
        self.client = self.app.test_client()
        self.changes = []
        self.app.extensions["change_feed"].subscribe(self.changes.append)

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def add_transaction(self, status="pending", age=timedelta(hours=1), user_id="user123",
                        amount_cents=15000, method="GCash", referral_code=None):
        transaction = WalletTransaction(
            user_id=user_id,
            amount_cents=amount_cents,
            method=method,
            status=status,
            referral_code=referral_code,
            created_at=utcnow() - age,
        )
        db.session.add(transaction)
        db.session.commit()
        return transaction

    def login(self):
        admin = Admin.query.filter_by(email=TestConfig.SEED_ADMIN_EMAIL).first()
        with self.client.session_transaction() as sess:
            sess["admin_id"] = admin.id
            sess["admin_username"] = admin.username
        return admin


class TransactionStoreTests(AppTestCase):
    def test_insert_list_and_get(self) -> None:
        store = SQLAlchemyTransactionStore()
        older = self.add_transaction(age=timedelta(days=2), user_id="old")
        created = store.insert({"user_id": "new", "amount_cents": 500, "method": "Bank", "status": "pending"})

        self.assertIsNotNone(created.id)
        self.assertIsNotNone(created.created_at)
        self.assertEqual([t.user_id for t in store.list()], ["new", "old"])
        self.assertEqual([t.id for t in store.list(user_id="old")], [older.id])
        self.assertIsNone(store.get_by_id(9999))

    def test_update_unknown_id(self) -> None:
        with self.assertRaises(TransactionNotFound):
            SQLAlchemyTransactionStore().update_status(9999, "approved")

    def test_policy_trigger_blocks_direct_reject(self) -> None:
        transaction = self.add_transaction(status="approved")
        self.changes.clear()

        with self.assertRaises(StoreError) as cm:
            SQLAlchemyTransactionStore().update_status(transaction.id, "rejected")

        self.assertIn(POLICY_MESSAGE, str(cm.exception))
        self.assertEqual(db.session.get(WalletTransaction, transaction.id).status, "approved")
        self.assertEqual(self.changes, [])

    def test_direct_reject_once_policy_dropped(self) -> None:
        transaction = self.add_transaction(status="approved")
        drop_transition_policy()
        updated = SQLAlchemyTransactionStore().update_status(transaction.id, "rejected")
        self.assertEqual(updated.status, "rejected")

    def test_pending_to_rejected_is_allowed(self) -> None:
        transaction = self.add_transaction(status="pending")
        updated = SQLAlchemyTransactionStore().update_status(transaction.id, "rejected")
        self.assertEqual(updated.status, "rejected")


class EngineIntegrationTests(AppTestCase):
    def test_fallback_against_database_trigger(self) -> None:
        transaction = self.add_transaction(status="approved")
        self.changes.clear()

        updated = self.app.extensions["status_engine"].request_status_change(transaction.id, "rejected")

        self.assertEqual(updated.status, "rejected")
        self.assertEqual(
            [(c.kind, c.row["status"]) for c in self.changes],
            [("update", "pending"), ("update", "rejected")],
        )
        notification = AdminNotification.query.filter_by(related_id=transaction.id).one()
        self.assertEqual(notification.title, "Transaction Rejected")
        self.assertIn("via pending", notification.message)

    def test_insert_is_published_after_commit(self) -> None:
        created = self.app.extensions["status_engine"].create_pending_transaction("user123", 15000, "GCash")
        self.assertEqual(created.status, "pending")
        self.assertEqual([(c.kind, c.row["id"]) for c in self.changes], [("insert", created.id)])


class AuthRouteTests(AppTestCase):
    def test_pages_require_login(self) -> None:
        response = self.client.get("/admin/dashboard")
        self.assertEqual(response.status_code, 302)
        self.assertIn("/admin/login", response.headers["Location"])

        response = self.client.get("/admin/api/transactions")
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.get_json()["success"])

    def test_login_with_seeded_admin(self) -> None:
        response = self.client.post("/admin/login", data={
            "email": TestConfig.SEED_ADMIN_EMAIL,
            "password": TestConfig.SEED_ADMIN_PASSWORD,
        })
        self.assertEqual(response.status_code, 302)
        self.assertTrue(response.headers["Location"].endswith("/admin/dashboard"))

    def test_login_with_wrong_password(self) -> None:
        response = self.client.post("/admin/login", data={
            "email": TestConfig.SEED_ADMIN_EMAIL,
            "password": "wrong-password",
        })
        self.assertEqual(response.status_code, 401)

    def test_password_reset_flow(self) -> None:
        admin = Admin.query.filter_by(email=TestConfig.SEED_ADMIN_EMAIL).first()
        token = generate_admin_reset_token(admin)

        response = self.client.post(f"/admin/reset-password/{token}", data={
            "password": "N3w-password!",
            "retype_password": "N3w-password!",
        })
        self.assertEqual(response.status_code, 302)
        self.assertTrue(db.session.get(Admin, admin.id).check_password("N3w-password!"))

    def test_reset_token_expiry(self) -> None:
        admin = Admin.query.filter_by(email=TestConfig.SEED_ADMIN_EMAIL).first()
        token = generate_admin_reset_token(admin, now=1_000_000)
        self.assertEqual(verify_admin_reset_token(token, now=1_000_000 + 60).id, admin.id)
        self.assertIsNone(verify_admin_reset_token(token, now=1_000_000 + 3601))
        self.assertIsNone(verify_admin_reset_token(token[:-2] + "xx", now=1_000_000))

    def test_create_admin_command_helper(self) -> None:
        admin, created = create_admin("Staff@Wallet.local", "staff-pass-1")
        self.assertTrue(created)
        self.assertEqual(admin.email, "staff@wallet.local")
        self.assertEqual(admin.username, "staff")
        self.assertFalse(admin.is_superadmin)

        admin, created = create_admin("staff@wallet.local", "another-pass", role="superadmin")
        self.assertFalse(created)
        self.assertTrue(admin.check_password("another-pass"))
        self.assertTrue(admin.is_superadmin)

    def test_create_admin_command(self) -> None:
        output = io.StringIO()
        with redirect_stdout(output):
            exit_code = create_admin_main(["ops@wallet.local", "ops-pass-123", "--role", "superadmin"], app=self.app)

        self.assertEqual(exit_code, 0)
        self.assertIn("[SUCCESS] Admin created: ops@wallet.local (superadmin)", output.getvalue())
        admin = Admin.query.filter_by(email="ops@wallet.local").one()
        self.assertTrue(admin.check_password("ops-pass-123"))

        with redirect_stdout(io.StringIO()) as second:
            create_admin_main(["ops@wallet.local", "ops-pass-456"], app=self.app)
        self.assertIn("Admin updated", second.getvalue())

    def test_reset_with_bad_token(self) -> None:
        response = self.client.get("/admin/reset-password/not-a-token")
        self.assertEqual(response.status_code, 302)
        self.assertIn("/admin/forgot-password", response.headers["Location"])

    def test_forgot_password_never_reveals_accounts(self) -> None:
        response = self.client.post("/admin/forgot-password", data={"email": "nobody@example.com"})
        self.assertEqual(response.status_code, 200)
        self.assertIn(b"If an admin account exists", response.data)


class TransactionRouteTests(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.login()

    def post_status(self, transaction_id, status):
        return self.client.post(f"/admin/transactions/{transaction_id}/status", json={"status": status})

    def test_dashboard_and_table_render(self) -> None:
        self.add_transaction(user_id="visible-user", status="approved", referral_code="REF1")
        dashboard = self.client.get("/admin/dashboard")
        self.assertEqual(dashboard.status_code, 200)
        self.assertIn(b"Pending Requests", dashboard.data)
        self.assertIn("₱150.00".encode(), dashboard.data)

        table = self.client.get("/admin/transactions")
        self.assertEqual(table.status_code, 200)
        self.assertIn(b"visible-user", table.data)

    def test_create_from_form(self) -> None:
        response = self.client.post("/admin/transactions/new", data={
            "user_id": "user123", "amount": "150", "method": "GCash", "referral_code": "",
        })
        self.assertEqual(response.status_code, 302)

        created = WalletTransaction.query.one()
        self.assertEqual(created.status, "pending")
        self.assertEqual(created.amount_cents, 15000)
        self.assertIsNone(created.referral_code)
        self.assertEqual(AdminNotification.query.filter_by(related_id=created.id).one().title, "New Cash-In Request")

    def test_create_with_bad_amount(self) -> None:
        response = self.client.post("/admin/transactions/new", data={
            "user_id": "user123", "amount": "-3", "method": "GCash",
        })
        self.assertEqual(response.status_code, 302)
        self.assertEqual(WalletTransaction.query.count(), 0)

    def test_approve(self) -> None:
        transaction = self.add_transaction()
        response = self.post_status(transaction.id, "approved")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["success"])
        self.assertEqual(body["transaction"]["status"], "approved")
        self.assertEqual(AdminNotification.query.filter_by(related_id=transaction.id).one().title,
                         "Transaction Approved")

    def test_reject_after_window(self) -> None:
        transaction = self.add_transaction(age=timedelta(hours=24, minutes=1))
        response = self.post_status(transaction.id, "rejected")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(db.session.get(WalletTransaction, transaction.id).status, "pending")

    def test_reject_approved_uses_fallback_and_keeps_cache_consistent(self) -> None:
        transaction = self.add_transaction(status="approved")
        self.client.get("/admin/api/transactions")  # load the cache

        response = self.post_status(transaction.id, "rejected")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["transaction"]["status"], "rejected")

        cache = self.app.extensions["transaction_cache"]
        self.assertEqual(cache.get(transaction.id)["status"], "rejected")
        self.assertEqual(cache.overrides(), {})
        listed = self.client.get("/admin/api/transactions").get_json()["transactions"]
        self.assertEqual(listed[0]["status"], "rejected")
        self.assertFalse(listed[0]["can_reject"])

    def test_bad_requests(self) -> None:
        transaction = self.add_transaction()
        self.assertEqual(self.post_status(transaction.id, "completed").status_code, 400)
        self.assertEqual(self.post_status(9999, "approved").status_code, 404)

    def test_malformed_json_bodies(self) -> None:
        transaction = self.add_transaction()
        url = f"/admin/transactions/{transaction.id}/status"
        for body in (["approved"], {"status": 5}, {"status": None}, {}):
            with self.subTest(body=body):
                response = self.client.post(url, json=body)
                self.assertEqual(response.status_code, 400)
                self.assertFalse(response.get_json()["success"])
        self.assertEqual(db.session.get(WalletTransaction, transaction.id).status, "pending")

    def test_form_status_change_redirects(self) -> None:
        transaction = self.add_transaction()
        response = self.client.post(f"/admin/transactions/{transaction.id}/status", data={"status": "approved"})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(db.session.get(WalletTransaction, transaction.id).status, "approved")

    def test_csv_export(self) -> None:
        self.add_transaction(user_id="alice", amount_cents=12345, referral_code="REF9")
        response = self.client.get("/admin/transactions/export/csv?search=alice")
        self.assertEqual(response.status_code, 200)
        self.assertIn("attachment; filename=wallet-transactions-", response.headers["Content-Disposition"])
        lines = response.data.decode("utf-8").strip().splitlines()
        self.assertEqual(lines[0], "User,Amount (₱),Method,Status,Referral Code,Date")
        self.assertTrue(lines[1].startswith("alice,123.45,GCash,pending,REF9,"))

    def test_api_filters(self) -> None:
        self.add_transaction(user_id="alice")
        self.add_transaction(user_id="bob", method="Bank")
        rows = self.client.get("/admin/api/transactions?search=bank").get_json()["transactions"]
        self.assertEqual([r["user_id"] for r in rows], ["bob"])

    def test_analytics_and_user_wallet(self) -> None:
        self.add_transaction(user_id="alice", status="approved", amount_cents=10000, referral_code="REF1")
        self.add_transaction(user_id="alice", status="pending", amount_cents=999)

        analytics = self.client.get("/admin/api/analytics").get_json()
        self.assertEqual(analytics["summary"]["total_balance"], 10000)
        self.assertEqual(analytics["summary"]["pending_requests"], 1)
        self.assertEqual(analytics["top_referrers"], [{"code": "REF1", "amount": 100.0}])
        self.assertEqual(len(analytics["daily_cash_in"]), 7)

        wallet = self.client.get("/admin/api/users/alice/wallet").get_json()["wallet"]
        self.assertEqual(wallet["balance"], 10000)
        self.assertIsNotNone(wallet["last_top_up"])

    def test_notifications_inbox(self) -> None:
        transaction = self.add_transaction()
        self.post_status(transaction.id, "approved")

        self.assertEqual(self.client.get("/admin/notifications/unread-count").get_json()["unread_count"], 1)
        notifications = self.client.get("/admin/notifications").get_json()["notifications"]
        self.assertEqual(notifications[0]["related_id"], transaction.id)

        self.client.post("/admin/notifications/mark-all-read")
        self.assertEqual(self.client.get("/admin/notifications/unread-count").get_json()["unread_count"], 0)


if __name__ == "__main__":
    unittest.main()
