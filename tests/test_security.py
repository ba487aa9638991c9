import pytest

from qrorder.core.errors import AuthenticationRequired
from qrorder.core.security import TokenService
from qrorder.domain import Identity, Role
from tests.helpers import make_settings


@pytest.fixture
def tokens() -> TokenService:
    return TokenService.from_settings(make_settings())


def test_access_token_carries_identity(tokens):
    pair = tokens.issue_token_pair("alice", Role.CUSTOMER)

    assert tokens.verify_access_token(pair.access_token) == Identity("alice", Role.CUSTOMER)
    assert pair.token_type == "Bearer"
    assert pair.expires_in == 7 * 24 * 3600


def test_token_types_are_not_interchangeable(tokens):
    pair = tokens.issue_token_pair("kim", Role.STAFF)

    with pytest.raises(AuthenticationRequired):
        tokens.verify_access_token(pair.refresh_token)
    with pytest.raises(AuthenticationRequired):
        tokens.verify_refresh_token(pair.access_token)


def test_refresh_issues_a_new_pair(tokens):
    pair = tokens.issue_token_pair("kim", Role.STAFF)
    renewed = tokens.refresh(pair.refresh_token)
    assert tokens.verify_access_token(renewed.access_token) == Identity("kim", Role.STAFF)


@pytest.mark.parametrize("token", ["", "not-a-token", "eyJ1c2VyX2lkIjoiYSJ9.bad.sig"])
def test_garbage_tokens_are_rejected(tokens, token):
    with pytest.raises(AuthenticationRequired):
        tokens.verify_access_token(token)


def test_tokens_from_another_secret_are_rejected(tokens):
    foreign = TokenService.from_settings(make_settings(access_token_secret="someone-else"))
    pair = foreign.issue_token_pair("mallory", Role.ADMIN)
    with pytest.raises(AuthenticationRequired):
        tokens.verify_access_token(pair.access_token)


def test_expired_tokens_are_rejected():
    tokens = TokenService("a", "r", access_ttl=-1, refresh_ttl=-1)
    pair = tokens.issue_token_pair("alice", Role.CUSTOMER)

    with pytest.raises(AuthenticationRequired) as exc_info:
        tokens.verify_access_token(pair.access_token)
    assert exc_info.value.message == "Token has expired"
