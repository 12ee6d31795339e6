from datetime import date, timedelta

import pytest

from gymdesk.app import create_app
from gymdesk.models.database import execute_query, current_db_path
from gymdesk.models.member import Member
from gymdesk.models.membership import Membership
from gymdesk.models.supplement import Supplement
from gymdesk.models.trainer import Trainer
from gymdesk.models.user import User


# -------------------------------------------------------------------
# Flask app fixture: fresh sqlite file per test
# -------------------------------------------------------------------
@pytest.fixture()
def flask_app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "DATABASE_PATH": str(tmp_path / "test.db"),
        "MAIL_SUPPRESS_SEND": True,
        "MAIL_DEFAULT_SENDER": "test@gymdesk.local",
        "BCRYPT_LOG_ROUNDS": 4,
        "INVOICE_DIR": str(tmp_path / "invoices"),
        "QR_CODE_DIR": str(tmp_path / "qr"),
        "SCHEDULER_ENABLED": False,
        "STRIPE_SECRET_KEY": "",
    })
    yield app


@pytest.fixture()
def app_ctx(flask_app):
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def client(flask_app):
    """Flask test client fixture."""
    return flask_app.test_client()


# -------------------------------------------------------------------
# Seeding helpers (call inside app_ctx)
# -------------------------------------------------------------------
class Seeder:
    def __init__(self):
        self._n = 0

    def _email(self, prefix):
        self._n += 1
        return f"{prefix}{self._n}@example.com"

    def user(self, role, password="secret123", email=None):
        user = User(email=email or self._email(role), password_hash=User.hash_password(password), role=role)
        user.save()
        return user

    def member(self, first_name="Test", last_name="Member", **kwargs):
        user = self.user("member", email=kwargs.pop("email", None))
        member = Member(user_id=user.id, first_name=first_name, last_name=last_name, **kwargs)
        member.save()
        return Member.get_by_id(member.id)

    def trainer(self, first_name="Tina", last_name="Trainer", is_available=True):
        user = self.user("trainer")
        trainer = Trainer(user_id=user.id, first_name=first_name, last_name=last_name,
                          specialization="Strength", hourly_rate=40, is_available=is_available)
        trainer.save()
        return Trainer.get_by_id(trainer.id)

    def plan_id(self, name="Monthly Basic"):
        rows = execute_query("SELECT id FROM membership_plans WHERE name = ?", (name,),
                             current_db_path(), fetch=True)
        return rows[0]["id"]

    def active_membership(self, member_id, days_left=30, auto_renewal=False):
        today = date.today()
        return Membership.create(member_id, self.plan_id(), (today - timedelta(days=1)).isoformat(),
                                 (today + timedelta(days=days_left)).isoformat(),
                                 auto_renewal=auto_renewal)

    def supplement(self, name="Whey Protein", price=49.99, stock=10):
        supplement = Supplement(name=name, category="protein", price=price, stock_quantity=stock)
        supplement.save()
        return supplement


@pytest.fixture()
def seed(app_ctx):
    return Seeder()


def count_rows(table, where="1=1", params=()):
    rows = execute_query(f"SELECT COUNT(*) FROM {table} WHERE {where}", params,
                         current_db_path(), fetch=True)
    return rows[0][0]


@pytest.fixture()
def count():
    return count_rows


@pytest.fixture()
def login_as(client):
    """Put a user into the test client's session."""
    def _login(user_id, role, member_id=None, trainer_id=None):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["role"] = role
            if member_id:
                sess["member_id"] = member_id
            if trainer_id:
                sess["trainer_id"] = trainer_id
    return _login
