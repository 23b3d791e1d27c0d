import pytest

from safedrop.models.account import Account
from safedrop.services import auth as auth_service
from safedrop.utils.security import check_password, create_jwt

from conftest import PASSWORD, make_customer


def test_reset_sets_new_password(db):
    customer = make_customer(db)
    account, token = auth_service.request_password_reset(db, customer.email.upper())
    assert account.id == customer.id

    auth_service.reset_password(db, token, "brand-new-pass")
    db.expire_all()
    hashed = db.get(Account, customer.id).password_hash
    assert check_password("brand-new-pass", hashed)
    assert not check_password(PASSWORD, hashed)


def test_reset_token_works_once(db):
    customer = make_customer(db)
    _, token = auth_service.request_password_reset(db, customer.email)
    auth_service.reset_password(db, token, "first-change")
    with pytest.raises(PermissionError):
        auth_service.reset_password(db, token, "second-change")


def test_reset_requires_six_characters(db):
    customer = make_customer(db)
    _, token = auth_service.request_password_reset(db, customer.email)
    with pytest.raises(ValueError):
        auth_service.reset_password(db, token, "12345")


def test_reset_refuses_foreign_tokens(db):
    customer = make_customer(db)
    session_token = create_jwt({"sub": str(customer.id), "role": "customer"})
    with pytest.raises(PermissionError):
        auth_service.reset_password(db, session_token, "another-pass")
    with pytest.raises(PermissionError):
        auth_service.reset_password(db, "not-a-token", "another-pass")


def test_unknown_and_admin_emails_get_no_token(db):
    assert auth_service.request_password_reset(db, "nobody@example.com") is None
    assert auth_service.request_password_reset(db, "admin@safedrop.com") is None
    with pytest.raises(ValueError):
        auth_service.request_password_reset(db, "not-an-email")
