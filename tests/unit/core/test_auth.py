from docpreview.core.auth import AuthContextResolver, JWTVerifier
from docpreview.core.config import AuthSettings
from tests.conftest import AUTH_BASE_URL, AUTH_SECRET, make_token


def resolver(enabled=True):
    if enabled:
        return AuthContextResolver(AuthSettings(secret=AUTH_SECRET, base_url=AUTH_BASE_URL))
    return AuthContextResolver(AuthSettings(secret="", base_url=""))


def test_auth_disabled_ignores_tokens():
    ctx = resolver(enabled=False).resolve(make_token())
    assert ctx.auth_enabled is False
    assert ctx.user_id is None


def test_valid_token_yields_user():
    ctx = resolver().resolve(make_token(is_anonymous=True))
    assert ctx.auth_enabled is True
    assert ctx.user_id == "user-1"
    assert ctx.is_anonymous is True


def test_missing_token_is_unauthenticated():
    ctx = resolver().resolve(None)
    assert ctx.auth_enabled is True
    assert not ctx.is_authenticated


def test_expired_token_is_unauthenticated():
    assert resolver().resolve(make_token(exp_offset=-60)).user_id is None


def test_wrong_secret_is_unauthenticated():
    assert resolver().resolve(make_token(secret="another-secret-of-sufficient-length")).user_id is None


def test_wrong_issuer_is_unauthenticated():
    assert resolver().resolve(make_token(iss="http://evil.test")).user_id is None


def test_verifier_accepts_trailing_slash_issuer():
    verifier = JWTVerifier(AUTH_SECRET, AUTH_BASE_URL + "/")
    claims = verifier.verify_token(make_token())
    assert claims.sub == "user-1"
