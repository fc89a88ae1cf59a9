import pytest

from keygate.errors import DeactivatedKey, InvalidKey, MissingKey, QuotaExceeded, StoreUnavailable
from keygate.services import secret_codec
from keygate.services.authenticator import RequestAuthenticator, extract_secret
from keygate.services.key_issuer import KeyIssuer
from keygate.services.quota import QuotaEnforcer
from keygate.services.usage_recorder import UsageRecorder


def _authenticator(store, clock, mode="atomic"):
    return RequestAuthenticator(store, QuotaEnforcer(store, mode=mode, tz="UTC", clock=clock), clock=clock)


def _call(auth, recorder, plaintext):
    """One authenticated call followed by its usage event, like the HTTP layer does."""
    result = auth.authenticate({"x-api-key": plaintext})
    if result.valid:
        recorder.record(result.key_id, "test.call", latency_ms=1)
    return result


def test_extract_secret_prefers_api_key_header():
    headers = {"X-API-Key": "from-header", "Authorization": "Bearer from-bearer"}
    assert extract_secret(headers) == "from-header"


def test_extract_secret_falls_back_to_bearer():
    assert extract_secret({"Authorization": "Bearer tok"}) == "tok"
    assert extract_secret({"authorization": "bearer tok"}) == "tok"
    assert extract_secret({"X-API-Key": "  ", "Authorization": "Bearer tok"}) == "tok"


def test_extract_secret_ignores_other_schemes():
    assert extract_secret({"Authorization": "Basic dXNlcjpwYXNz"}) is None
    assert extract_secret({"Authorization": "Bearer "}) is None
    assert extract_secret({}) is None


def test_round_trip(store, clock):
    issued = KeyIssuer(store).issue("owner-1", plan="pro")

    result = _authenticator(store, clock).authenticate({"Authorization": f"Bearer {issued.plaintext}"})
    assert result.valid is True
    assert result.key_id == issued.id
    assert result.owner_id == "owner-1"
    assert result.plan == "pro"
    assert result.error is None


def test_successful_auth_updates_last_used(store, clock):
    issued = KeyIssuer(store).issue("owner-1")
    _authenticator(store, clock).authenticate({"x-api-key": issued.plaintext})
    assert store.keys[issued.id]["last_used_at"] == clock().isoformat()


def test_missing_key(store, clock):
    result = _authenticator(store, clock).authenticate({})
    assert result.valid is False
    assert isinstance(result.error, MissingKey)


def test_unknown_and_malformed_keys_look_the_same(store, clock):
    auth = _authenticator(store, clock)
    well_formed = auth.authenticate({"x-api-key": secret_codec.generate_secret()})
    garbage = auth.authenticate({"x-api-key": "not-a-key"})

    assert isinstance(well_formed.error, InvalidKey)
    assert isinstance(garbage.error, InvalidKey)
    assert well_formed.error.to_dict() == garbage.error.to_dict()
    assert well_formed.error.status_code == garbage.error.status_code == 401


def test_deactivation_is_sticky(store, clock):
    issuer = KeyIssuer(store)
    issued = issuer.issue("owner-1")
    issuer.deactivate(issued.id)
    auth = _authenticator(store, clock)

    for _ in range(3):
        result = auth.authenticate({"x-api-key": issued.plaintext})
        assert result.valid is False
        assert isinstance(result.error, DeactivatedKey)

    assert result.error.code != InvalidKey().code
    assert result.error.message != InvalidKey().message


@pytest.mark.parametrize("mode", ["atomic", "ledger"])
def test_quota_boundary_and_daily_reset(store, clock, mode):
    issued = KeyIssuer(store).issue("owner-1")
    store.keys[issued.id]["daily_quota"] = 3
    auth = _authenticator(store, clock, mode)
    recorder = UsageRecorder(store, clock=clock)

    results = [_call(auth, recorder, issued.plaintext) for _ in range(4)]
    assert [r.valid for r in results] == [True, True, True, False]
    assert isinstance(results[3].error, QuotaExceeded)
    assert results[3].error.daily_quota == 3

    clock.advance(days=1)
    assert _call(auth, recorder, issued.plaintext).valid is True


def test_quota_resets_at_midnight_not_after_24_hours(store, clock):
    clock.now = clock.now.replace(hour=23, minute=59)
    issued = KeyIssuer(store).issue("owner-1")
    store.keys[issued.id]["daily_quota"] = 1
    auth = _authenticator(store, clock)

    assert auth.authenticate({"x-api-key": issued.plaintext}).valid is True
    assert auth.authenticate({"x-api-key": issued.plaintext}).valid is False

    clock.advance(minutes=2)
    assert auth.authenticate({"x-api-key": issued.plaintext}).valid is True


def test_quota_exceeded_carries_retry_after(store, clock):
    issued = KeyIssuer(store).issue("owner-1")
    store.keys[issued.id]["daily_quota"] = 0

    result = _authenticator(store, clock).authenticate({"x-api-key": issued.plaintext})
    assert isinstance(result.error, QuotaExceeded)
    # 09:30 UTC -> 14.5 hours to midnight
    assert result.error.retry_after == 14 * 3600 + 30 * 60
    assert result.error.to_dict()["dailyQuota"] == 0


@pytest.mark.parametrize("mode", ["atomic", "ledger"])
def test_free_plan_allows_exactly_100_calls_per_day(store, clock, mode):
    issued = KeyIssuer(store).issue("owner-1", plan="free")
    auth = _authenticator(store, clock, mode)
    recorder = UsageRecorder(store, clock=clock)

    results = []
    for _ in range(101):
        results.append(_call(auth, recorder, issued.plaintext))
        clock.advance(milliseconds=1)

    assert all(r.valid for r in results[:100])
    assert results[100].valid is False
    assert isinstance(results[100].error, QuotaExceeded)
    assert results[100].error.to_dict()["dailyQuota"] == 100


def test_last_used_failure_does_not_fail_auth(store, clock):
    issued = KeyIssuer(store).issue("owner-1")
    store.fail_updates = True

    result = _authenticator(store, clock).authenticate({"x-api-key": issued.plaintext})
    assert result.valid is True
    assert store.keys[issued.id]["last_used_at"] is None


def test_store_outage_is_not_an_auth_decision(store, clock):
    issued = KeyIssuer(store).issue("owner-1")
    store.unavailable = True

    with pytest.raises(StoreUnavailable):
        _authenticator(store, clock).authenticate({"x-api-key": issued.plaintext})


def test_any_last_used_failure_is_swallowed(store, clock):
    issued = KeyIssuer(store).issue("owner-1")

    def broken_update(key_id, data):
        raise RuntimeError("unexpected response")

    store.update_key = broken_update
    result = _authenticator(store, clock).authenticate({"x-api-key": issued.plaintext})
    assert result.valid is True
