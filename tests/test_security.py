import jwt
import pytest

from storefront.utils.security import (
    create_access_token,
    decode_token,
    hash_password,
    pwd_ctx,
    random_password,
)


def test_password_hash_round_trip():
    hashed = hash_password("hunter22")

    assert hashed != "hunter22"
    assert pwd_ctx.verify("hunter22", hashed)
    assert not pwd_ctx.verify("hunter23", hashed)


def test_random_password_length():
    assert len(random_password()) == 12
    assert random_password() != random_password()


def test_access_token_claims():
    claims = decode_token(create_access_token(7, "admin"))

    assert claims["sub"] == "7"
    assert claims["role"] == "admin"
    assert claims["type"] == "access"


def test_token_signed_with_another_key_is_rejected():
    forged = jwt.encode({"sub": "7", "role": "admin", "type": "access"}, "another-secret", algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_token(forged)
