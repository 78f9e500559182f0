"""
tests/test_user_store.py -- Unit tests for auth/store.py (UserStore) and the
password helpers in auth/tokens.py.
"""

from __future__ import annotations

import uuid

import pytest

from auth.models import Organization, User
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password, verify_password
from core.errors import Conflict
from conftest import memory_url


@pytest.fixture
def store():
    s = UserStore(memory_url(f"users_{uuid.uuid4().hex}"))
    yield s
    s.close()


def _user(email: str = "alice@acme.com", password: str = "secret-pw") -> User:
    return User(email=email, password_hash=hash_password(password), first_name="Alice", last_name="Smith")


class TestPasswords:
    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("secret-pw")
        assert hashed != "secret-pw"
        assert hashed.startswith("$2")
        assert verify_password("secret-pw", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("secret-pw", "not-a-bcrypt-hash") is False


class TestUsers:
    def test_create_and_lookup(self, store):
        created = store.create_user(_user())
        assert created.id
        assert created.created_at and created.updated_at
        assert store.get_by_email("alice@acme.com").id == created.id
        assert store.get_by_id(created.id).email == "alice@acme.com"

    def test_email_lookup_is_case_sensitive(self, store):
        store.create_user(_user())
        assert store.get_by_email("ALICE@acme.com") is None

    def test_duplicate_email_conflicts(self, store):
        store.create_user(_user())
        with pytest.raises(Conflict):
            store.create_user(_user())

    def test_unknown_ids_return_none(self, store):
        assert store.get_by_id("missing") is None
        assert store.update_user("missing", first_name="X") is None

    def test_update_user_changes_fields_and_stamps_updated_at(self, store):
        created = store.create_user(_user())
        updated = store.update_user(created.id, first_name="Alicia")
        assert updated.first_name == "Alicia"
        assert updated.updated_at >= created.updated_at

    def test_update_to_taken_email_conflicts(self, store):
        store.create_user(_user("a@acme.com"))
        other = store.create_user(_user("b@acme.com"))
        with pytest.raises(Conflict):
            store.update_user(other.id, email="a@acme.com")
        assert store.get_by_id(other.id).email == "b@acme.com"

    def test_update_rejects_unknown_fields(self, store):
        created = store.create_user(_user())
        with pytest.raises(ValueError):
            store.update_user(created.id, created_at="2000-01-01")

    def test_record_login(self, store):
        created = store.create_user(_user())
        assert created.last_login_at is None
        store.record_login(created.id)
        assert store.get_by_id(created.id).last_login_at is not None


class TestRegisterOrganization:
    def test_creates_org_and_binds_user(self, store):
        org, user = store.register_organization(Organization(name="Acme", domain="acme.com"), _user())
        assert org.id and org.timezone == "UTC"
        assert user.organization_id == org.id
        assert store.get_organization(org.id).name == "Acme"

    def test_duplicate_email_rolls_back_organization(self, store):
        store.register_organization(Organization(name="First"), _user())
        before = store.count_organizations()
        with pytest.raises(Conflict):
            store.register_organization(Organization(name="Second"), _user())
        assert store.count_organizations() == before


class TestAuthenticateUser:
    def test_success(self, store):
        store.create_user(_user(password="right-pw"))
        assert authenticate_user(store, "alice@acme.com", "right-pw") is not None

    def test_wrong_password_and_unknown_email_both_none(self, store):
        store.create_user(_user(password="right-pw"))
        assert authenticate_user(store, "alice@acme.com", "wrong-pw") is None
        assert authenticate_user(store, "nobody@acme.com", "right-pw") is None
