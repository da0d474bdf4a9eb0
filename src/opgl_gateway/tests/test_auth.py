import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from opgl_gateway.core.auth import AuthService, TokenError, TokenType
from opgl_gateway.core.passwords import (
    InvalidRegistration,
    hash_password,
    validate_registration,
    verify_password,
)

SECRET = "unit-test-secret-0123456789abcdef0123"


def make_service(**kwargs) -> AuthService:
    kwargs.setdefault("access_ttl", timedelta(minutes=15))
    kwargs.setdefault("refresh_ttl", timedelta(days=7))
    return AuthService(SECRET, **kwargs)


@pytest.fixture
def service() -> AuthService:
    return make_service()


@pytest.fixture
def account_id() -> uuid.UUID:
    return uuid.uuid4()


def test_access_token_round_trip(service, account_id):
    pair = service.issue_pair(account_id)

    assert service.validate(pair.access_token, TokenType.ACCESS) == account_id
    assert service.validate_refresh_token(pair.refresh_token) == account_id
    assert pair.expires_in == 15 * 60


def test_access_token_rejected_as_refresh(service, account_id):
    pair = service.issue_pair(account_id)

    with pytest.raises(TokenError, match="refresh"):
        service.validate(pair.access_token, TokenType.REFRESH)


def test_refresh_token_rejected_as_access(service, account_id):
    pair = service.issue_pair(account_id)

    with pytest.raises(TokenError, match="access"):
        service.validate_access_token(pair.refresh_token)


def test_tokens_carry_expected_claims(service, account_id):
    pair = service.issue_pair(account_id)
    access = jwt.decode(pair.access_token, SECRET, algorithms=["HS256"], issuer="opgl-gateway")
    refresh = jwt.decode(pair.refresh_token, SECRET, algorithms=["HS256"], issuer="opgl-gateway")

    assert access["sub"] == str(account_id)
    assert access["token_type"] == "access"
    assert refresh["token_type"] == "refresh"
    assert access["nbf"] == access["iat"]
    assert refresh["exp"] - refresh["iat"] == 7 * 24 * 3600


def test_expired_token_fails(account_id):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    issuer = make_service(clock=lambda: past)
    pair = issuer.issue_pair(account_id)

    with pytest.raises(TokenError, match="expired"):
        make_service().validate_access_token(pair.access_token)


def test_not_yet_valid_token_fails(account_id):
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    pair = make_service(clock=lambda: future).issue_pair(account_id)

    with pytest.raises(TokenError, match="not yet valid"):
        make_service().validate_access_token(pair.access_token)


def test_wrong_secret_fails(account_id):
    other = AuthService("another-secret-0123456789abcdef0123", timedelta(minutes=15), timedelta(days=7))
    pair = other.issue_pair(account_id)

    with pytest.raises(TokenError, match="signature"):
        make_service().validate_access_token(pair.access_token)


def test_wrong_issuer_fails(account_id):
    pair = make_service(issuer="someone-else").issue_pair(account_id)

    with pytest.raises(TokenError, match="issuer"):
        make_service().validate_access_token(pair.access_token)


def _claims(**overrides):
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(uuid.uuid4()),
        "token_type": "access",
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=5),
        "iss": "opgl-gateway",
    }
    claims.update(overrides)
    return claims


def test_malformed_subject_fails(service):
    token = jwt.encode(_claims(sub="not-a-uuid"), SECRET, algorithm="HS256")

    with pytest.raises(TokenError, match="subject"):
        service.validate_access_token(token)


def test_missing_type_claim_fails(service):
    claims = _claims()
    del claims["token_type"]
    token = jwt.encode(claims, SECRET, algorithm="HS256")

    with pytest.raises(TokenError, match="token_type"):
        service.validate_access_token(token)


def test_unsigned_token_fails(service):
    token = jwt.encode(_claims(), None, algorithm="none")

    with pytest.raises(TokenError):
        service.validate_access_token(token)


def test_garbage_token_fails(service):
    with pytest.raises(TokenError):
        service.validate_access_token("definitely.not.ajwt")


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        AuthService("", timedelta(minutes=1), timedelta(minutes=2))


class TestPasswords:
    def test_hash_is_salted_and_verifiable(self):
        first = hash_password("longenough")
        second = hash_password("longenough")

        assert first != second
        assert "longenough" not in first
        assert verify_password("longenough", first)
        assert not verify_password("wrong-password", first)

    def test_missing_hash_never_verifies(self):
        assert verify_password("longenough", None) is False

    def test_malformed_hash_never_verifies(self):
        assert verify_password("longenough", "not-a-bcrypt-hash") is False

    def test_long_passwords_are_accepted(self):
        password = "x" * 100
        assert verify_password(password, hash_password(password))

    @pytest.mark.parametrize(
        "email,password,message",
        [
            ("", "longenough", "email is required"),
            ("no-at-sign", "longenough", "invalid email format"),
            ("a@b.com", "", "password is required"),
            ("a@b.com", "short", "at least 8"),
        ],
    )
    def test_registration_rules(self, email, password, message):
        with pytest.raises(InvalidRegistration, match=message):
            validate_registration(email, password)

    def test_valid_registration(self):
        validate_registration("a@b.com", "12345678")
