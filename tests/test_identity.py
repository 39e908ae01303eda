import pytest

from accounts.auth.password import verify_password
from accounts.auth.service import IdentityResolver
from accounts.shared.db import make_session_factory
from accounts.shared.errors import (
    CreationConflict, EmailAlreadyRegistered, InvalidCredentials, InvalidEmail,
    LinkageConflict, OAuthOnlyAccount, StorageError, UserNotFound, WeakPassword,
)
from accounts.users import store


# ----- registration -----

def test_register_creates_credentials_account(resolver):
    user = resolver.register("a@x.com", "Abcd1234", "Ada")
    assert user.id is not None
    assert user.email_verified is False
    assert user.subscription_status == "trial"
    assert user.subscription_tier == "free"
    assert user.oauth_provider is None
    assert verify_password("Abcd1234", user.password_hash)
    assert user.is_oauth_only is False


def test_register_rejects_duplicate_email(resolver):
    resolver.register("a@x.com", "Abcd1234")
    with pytest.raises(EmailAlreadyRegistered):
        resolver.register("a@x.com", "Other5678")


def test_register_rejects_weak_password_with_reason(resolver):
    with pytest.raises(WeakPassword) as exc:
        resolver.register("a@x.com", "abcd1234")
    assert "uppercase" in exc.value.message


def test_register_rejects_bad_email(resolver):
    with pytest.raises(InvalidEmail):
        resolver.register("not-an-email", "Abcd1234")


def test_email_match_is_case_sensitive(resolver):
    first = resolver.register("a@x.com", "Abcd1234")
    second = resolver.register("A@x.com", "Abcd1234")
    assert first.id != second.id


def test_register_race_surfaces_creation_conflict(resolver, monkeypatch):
    resolver.register("a@x.com", "Abcd1234")
    # the pre-check misses the row another request just wrote
    monkeypatch.setattr(store, "find_by_email", lambda db, email: None)
    with pytest.raises(CreationConflict) as exc:
        resolver.register("a@x.com", "Abcd1234")
    assert exc.value.retryable is True


# ----- credentials sign-in -----

def test_authenticate_success_stamps_last_login(resolver, clock):
    resolver.register("a@x.com", "Abcd1234")
    clock.advance(hours=2)
    user = resolver.authenticate("a@x.com", "Abcd1234")
    assert user.last_login_at == clock.now
    assert resolver.get_user(user.id).last_login_at == clock.now


def test_unknown_email_and_wrong_password_look_the_same(resolver):
    resolver.register("a@x.com", "Abcd1234")
    with pytest.raises(InvalidCredentials) as unknown:
        resolver.authenticate("nobody@x.com", "Abcd1234")
    with pytest.raises(InvalidCredentials) as wrong:
        resolver.authenticate("a@x.com", "Wrong1234")
    assert type(unknown.value) is type(wrong.value)
    assert unknown.value.message == wrong.value.message
    assert unknown.value.code == wrong.value.code


def test_authenticate_does_not_fold_case(resolver):
    resolver.register("a@x.com", "Abcd1234")
    with pytest.raises(InvalidCredentials):
        resolver.authenticate("A@X.COM", "Abcd1234")


# ----- external providers -----

def test_oauth_sign_in_creates_verified_passwordless_user(resolver):
    user = resolver.resolve_oauth("a@x.com", "google", "g-123", "Ada", "https://img/a.png")
    assert user.email_verified is True
    assert user.is_oauth_only is True
    assert user.password_hash is None
    assert user.oauth_provider == "google"
    assert user.oauth_id == "g-123"
    assert user.subscription_status == "trial"
    assert resolver.get_user_by_oauth("google", "g-123").id == user.id


@pytest.mark.parametrize("pw", ["", "Abcd1234", "anything at all"])
def test_oauth_only_account_never_authenticates_with_password(resolver, pw):
    resolver.resolve_oauth("a@x.com", "google", "g-123")
    with pytest.raises(OAuthOnlyAccount):
        resolver.authenticate("a@x.com", pw)


def test_second_provider_reuses_row_without_recording_link(resolver, clock):
    first = resolver.resolve_oauth("a@x.com", "google", "g-123")
    clock.advance(minutes=5)
    again = resolver.resolve_oauth("a@x.com", "github", "gh-9")
    assert again.id == first.id
    stored = resolver.get_user(first.id)
    assert stored.oauth_provider == "google"
    assert stored.oauth_id == "g-123"
    assert stored.last_login_at == clock.now
    assert resolver.get_user_by_oauth("github", "gh-9") is None


def test_provider_sign_in_links_to_credentials_account_by_email(resolver):
    registered = resolver.register("a@x.com", "Abcd1234")
    linked = resolver.resolve_oauth("a@x.com", "google", "g-123")
    assert linked.id == registered.id
    assert linked.is_oauth_only is False
    # password sign-in keeps working
    assert resolver.authenticate("a@x.com", "Abcd1234").id == registered.id


def test_same_provider_identity_under_new_email_is_a_linkage_conflict(resolver):
    resolver.resolve_oauth("a@x.com", "google", "g-123")
    with pytest.raises(LinkageConflict) as exc:
        resolver.resolve_oauth("b@x.com", "google", "g-123")
    assert exc.value.retryable is False


def test_oauth_creation_race_is_retryable_conflict(resolver, monkeypatch):
    resolver.resolve_oauth("a@x.com", "google", "g-123")
    real = store.find_by_email
    calls = {"n": 0}

    def first_lookup_misses(db, email):
        calls["n"] += 1
        return None if calls["n"] == 1 else real(db, email)

    monkeypatch.setattr(store, "find_by_email", first_lookup_misses)
    with pytest.raises(CreationConflict) as exc:
        resolver.resolve_oauth("a@x.com", "github", "gh-9")
    assert exc.value.retryable is True


def test_verify_email(resolver):
    user = resolver.register("a@x.com", "Abcd1234")
    resolver.verify_email(user.id)
    assert resolver.get_user(user.id).email_verified is True
    with pytest.raises(UserNotFound):
        resolver.verify_email(9999)


# ----- storage failures -----

def test_storage_failure_raises_storage_error(tmp_path, clock):
    # no tables created: every query fails
    broken = IdentityResolver(make_session_factory(f"sqlite:///{(tmp_path / 'empty.db').as_posix()}"), clock)
    with pytest.raises(StorageError):
        broken.authenticate("a@x.com", "Abcd1234")
