from __future__ import annotations

from json import dumps as json_dumps

import pytest

from dahuanvr.credentials import Credentials
from dahuanvr.exceptions import DahuaException
from dahuanvr.storage import (
    AUTH_EXPIRY_SECONDS,
    AuthStore,
    EndpointRegistry,
    MemorySecureStore,
    NvrEndpoint,
)

CREDS = Credentials("http://192.168.1.108", "admin", "secret")


def _endpoint(name: str, url: str, **kwargs) -> NvrEndpoint:
    return NvrEndpoint(name=name, credentials=Credentials(url, "admin", "pw"), **kwargs)


@pytest.fixture()
def store() -> MemorySecureStore:
    return MemorySecureStore()


def test_memory_store(store):
    assert not store.exists("key")
    store.save("key", "value")
    assert store.load("key") == "value"
    assert store.exists("key")
    store.delete("key")
    store.delete("key")
    assert store.load("key") is None


def test_auth_store_round_trip(store):
    auth = AuthStore(store)
    auth.save(CREDS, now=1000.0)
    assert auth.load(now=1000.0 + AUTH_EXPIRY_SECONDS) == CREDS


def test_auth_store_expired(store):
    auth = AuthStore(store)
    auth.save(CREDS, now=1000.0)
    assert auth.load(now=1001.0 + AUTH_EXPIRY_SECONDS) is None
    assert not store.exists("DahuaNVRAuth")


def test_auth_store_corrupt(store, caplog):
    store.save("DahuaNVRAuth", "{not json")
    assert AuthStore(store).load() is None
    assert not store.exists("DahuaNVRAuth")
    assert "Discarding unreadable persisted credentials" in caplog.text


def test_auth_store_clear(store):
    auth = AuthStore(store)
    auth.save(CREDS)
    auth.clear()
    assert auth.load() is None


def test_endpoint_is_valid():
    assert _endpoint("NVR", "http://10.0.0.1").is_valid
    assert not _endpoint("", "http://10.0.0.1").is_valid
    assert not NvrEndpoint(name="NVR", credentials=Credentials("http://x")).is_valid


def test_first_endpoint_becomes_default(store):
    registry = EndpointRegistry(store)
    first = registry.add(_endpoint("Home", "http://10.0.0.1"))
    second = registry.add(_endpoint("Office", "http://10.0.0.2"))

    assert first.is_default
    assert not second.is_default
    assert registry.default == first


def test_add_default_clears_others(store):
    registry = EndpointRegistry(store)
    registry.add(_endpoint("Home", "http://10.0.0.1"))
    office = registry.add(_endpoint("Office", "http://10.0.0.2", is_default=True))

    assert [e.is_default for e in registry.endpoints] == [False, True]
    assert registry.default == office


def test_add_invalid_endpoint(store):
    with pytest.raises(DahuaException):
        EndpointRegistry(store).add(_endpoint("", "http://10.0.0.1"))


def test_remove_default_promotes_first(store):
    registry = EndpointRegistry(store)
    home = registry.add(_endpoint("Home", "http://10.0.0.1"))
    office = registry.add(_endpoint("Office", "http://10.0.0.2"))
    lab = registry.add(_endpoint("Lab", "http://10.0.0.3"))

    registry.remove(home.id)
    assert [e.id for e in registry.endpoints] == [office.id, lab.id]
    assert registry.default.id == office.id

    registry.remove(office.id)
    registry.remove(lab.id)
    assert registry.endpoints == []
    assert registry.default is None


def test_set_default(store):
    registry = EndpointRegistry(store)
    registry.add(_endpoint("Home", "http://10.0.0.1"))
    office = registry.add(_endpoint("Office", "http://10.0.0.2"))

    assert registry.set_default(office.id).id == office.id
    assert sum(e.is_default for e in registry.endpoints) == 1

    with pytest.raises(DahuaException):
        registry.set_default("missing")


def test_update_status_and_persistence(store):
    registry = EndpointRegistry(store)
    home = registry.add(_endpoint("Home", "http://10.0.0.1"))
    registry.update_status(home.id, rpc_success=True, cgi_success=False)

    reloaded = EndpointRegistry(store)
    endpoint = reloaded.get(home.id)
    assert endpoint.rpc_auth_success
    assert not endpoint.cgi_auth_success
    assert endpoint.credentials == home.credentials
    assert reloaded.find_by_url("http://10.0.0.1") == endpoint
    assert reloaded.find_by_url("http://10.0.0.9") is None


def test_corrupt_endpoint_list(store, caplog):
    store.save("SavedNVRSystems", "[{")
    assert EndpointRegistry(store).endpoints == []
    assert "Discarding unreadable endpoint list" in caplog.text


def test_loaded_list_without_default_promotes_first(store):
    endpoints = [
        _endpoint("Home", "http://10.0.0.1"),
        _endpoint("Office", "http://10.0.0.2"),
    ]
    store.save("SavedNVRSystems", json_dumps([e.to_dict() for e in endpoints]))

    loaded = EndpointRegistry(store).endpoints
    assert [e.is_default for e in loaded] == [True, False]
