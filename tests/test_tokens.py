from datetime import timedelta

import jwt
import pytest

from todo_api.errors import InvalidToken
from todo_api.tokens import TokenService

SECRET = "unit-test-secret-0123456789abcdef0123"
USER_ID = "66f1c2a9e4b0a1b2c3d4e5f6"


def test_issue_then_verify_round_trip():
    tokens = TokenService(SECRET, ttl=timedelta(hours=1), issuer="todo-api")
    token = tokens.issue(USER_ID)
    assert tokens.verify(token) == USER_ID


def test_claims():
    token = TokenService(SECRET, ttl=timedelta(minutes=5), issuer="todo-api").issue(USER_ID)
    claims = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_iss": False})
    assert claims["sub"] == USER_ID
    assert claims["userId"] == USER_ID
    assert claims["iss"] == "todo-api"
    assert claims["exp"] - claims["iat"] == 300


def test_expired_token_is_rejected():
    tokens = TokenService(SECRET, ttl=timedelta(seconds=-1))
    with pytest.raises(InvalidToken):
        tokens.verify(tokens.issue(USER_ID))


def test_wrong_secret_is_rejected():
    token = TokenService("another-secret-0123456789abcdef0123").issue(USER_ID)
    with pytest.raises(InvalidToken):
        TokenService(SECRET).verify(token)


@pytest.mark.parametrize("token", ["", "abc", "a.b.c"])
def test_malformed_token_is_rejected(token):
    with pytest.raises(InvalidToken):
        TokenService(SECRET).verify(token)


def test_token_without_expiry_is_rejected():
    token = jwt.encode({"sub": USER_ID}, SECRET, algorithm="HS256")
    with pytest.raises(InvalidToken):
        TokenService(SECRET).verify(token)
