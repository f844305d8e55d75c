import base64
import time

import httpx
import pytest
import rsa
from jose import jwt

from utils import auth
from utils.auth import (
    Auth0IdentityVerifier,
    CallerIdentity,
    FirebaseIdentityVerifier,
    InvalidCredentialError,
    extract_bearer_token,
)

DOMAIN = "homebase.us.auth0.com"
AUDIENCE = "https://api.homebase.test"
ISSUER = f"https://{DOMAIN}/"


def _b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@pytest.fixture(scope="module")
def signing_key():
    public_key, private_key = rsa.newkeys(2048)
    jwk = {
        "kty": "RSA",
        "kid": "key-1",
        "use": "sig",
        "alg": "RS256",
        "n": _b64url_uint(public_key.n),
        "e": _b64url_uint(public_key.e),
    }
    return private_key.save_pkcs1().decode("ascii"), jwk


def _token(private_pem, claims=None, kid="key-1"):
    now = int(time.time())
    payload = {
        "sub": "auth0|user-123",
        "email": "owner@example.com",
        "aud": AUDIENCE,
        "iss": ISSUER,
        "iat": now,
        "exp": now + 600,
    }
    payload.update(claims or {})
    return jwt.encode(payload, private_pem, algorithm="RS256", headers={"kid": kid})


def _verifier(jwk, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(200, json={"keys": [jwk]})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return Auth0IdentityVerifier(DOMAIN, AUDIENCE, http_client=client)


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("Bearer abc.def", "abc.def"),
        ("Token abc.def", None),
        ("Bearer ", None),
        ("Bearer   spaced  ", "spaced"),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected


def test_auth0_verifier_accepts_valid_token(signing_key):
    private_pem, jwk = signing_key
    calls = []
    verifier = _verifier(jwk, calls)

    identity = verifier.verify(_token(private_pem))

    assert identity == CallerIdentity(id="auth0|user-123", email="owner@example.com")
    assert calls == [f"https://{DOMAIN}/.well-known/jwks.json"]


def test_auth0_verifier_caches_jwks(signing_key):
    private_pem, jwk = signing_key
    calls = []
    verifier = _verifier(jwk, calls)

    verifier.verify(_token(private_pem))
    verifier.verify(_token(private_pem))

    assert len(calls) == 1


def test_auth0_verifier_rejects_expired_token(signing_key):
    private_pem, jwk = signing_key
    verifier = _verifier(jwk)
    expired = _token(private_pem, {"iat": int(time.time()) - 7200, "exp": int(time.time()) - 3600})

    with pytest.raises(InvalidCredentialError, match="expired"):
        verifier.verify(expired)


def test_auth0_verifier_rejects_wrong_audience(signing_key):
    private_pem, jwk = signing_key
    verifier = _verifier(jwk)

    with pytest.raises(InvalidCredentialError):
        verifier.verify(_token(private_pem, {"aud": "https://someone-else.test"}))


def test_auth0_verifier_refreshes_on_unknown_kid(signing_key):
    private_pem, jwk = signing_key
    calls = []
    verifier = _verifier(jwk, calls)

    with pytest.raises(InvalidCredentialError, match="kid"):
        verifier.verify(_token(private_pem, kid="rotated-key"))
    assert len(calls) == 2


def test_auth0_verifier_rejects_garbage():
    verifier = Auth0IdentityVerifier(DOMAIN, AUDIENCE, http_client=httpx.Client())
    with pytest.raises(InvalidCredentialError):
        verifier.verify("not-a-jwt")


def test_firebase_verifier_maps_decoded_token(monkeypatch):
    seen = {}

    def fake_verify(token, app=None, check_revoked=False):
        seen["token"] = token
        seen["app"] = app
        return {"uid": "firebase-uid", "email": "owner@example.com"}

    monkeypatch.setattr(auth.firebase_auth, "verify_id_token", fake_verify)
    app = object()

    identity = FirebaseIdentityVerifier(app).verify("id-token")

    assert identity == CallerIdentity(id="firebase-uid", email="owner@example.com")
    assert seen == {"token": "id-token", "app": app}


def test_firebase_verifier_wraps_library_errors(monkeypatch):
    def fake_verify(token, app=None, check_revoked=False):
        raise ValueError("Illegal ID token provided.")

    monkeypatch.setattr(auth.firebase_auth, "verify_id_token", fake_verify)

    with pytest.raises(InvalidCredentialError, match="Illegal ID token"):
        FirebaseIdentityVerifier(object()).verify("id-token")
