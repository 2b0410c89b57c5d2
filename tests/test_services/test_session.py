"""Tests for the session store."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from hichers.schemas.session import BusinessProfile, Session
from hichers.session import SessionStore


def test_empty_store_is_signed_out():
    session = SessionStore({}).load()

    assert session.is_authenticated is False
    assert session.user_id is None


def test_prefixed_keys_win_over_plain_keys():
    store = SessionStore(
        {"hichersToken": "new", "token": "old", "hichersUserID": "7", "userID": "3"}
    )

    session = store.load()

    assert session.auth_token == "new"
    assert session.user_id == 7


def test_plain_keys_are_the_fallback():
    profile = json.dumps({"name": "Corner Cafe"})
    session = SessionStore({"token": "abc", "userID": "9", "userInfo": profile}).load()

    assert session.auth_token == "abc"
    assert session.user_id == 9
    assert session.business_profile.name == "Corner Cafe"


def test_token_without_user_reads_as_signed_out():
    assert SessionStore({"token": "abc"}).load().is_authenticated is False


def test_session_model_rejects_token_without_user():
    with pytest.raises(PydanticValidationError):
        Session(auth_token="abc")


def test_save_writes_both_key_families_and_clear_removes_them():
    raw: dict = {}
    store = SessionStore(raw)
    store.save(
        Session(auth_token="tok", user_id=5, business_profile=BusinessProfile(name="Corner Cafe"))
    )

    assert raw["token"] == raw["hichersToken"] == "tok"
    assert raw["userID"] == raw["hichersUserID"] == "5"
    assert json.loads(raw["hichersUser"])["name"] == "Corner Cafe"
    assert store.load().business_profile.name == "Corner Cafe"

    store.set_pending_otp(5, "+44", "7700900123")
    store.clear()
    assert raw == {}


def test_pending_otp_state():
    store = SessionStore()
    store.set_pending_otp(12, "+44", "7700900123")

    assert store.pending_otp_user_id() == 12
    assert store.pending_phone() == {"countryCode": "+44", "mobileNumber": "7700900123"}

    store.clear_pending_otp()
    assert store.pending_otp_user_id() is None
    assert store.pending_phone() is None


def test_unreadable_profile_is_ignored():
    session = SessionStore({"token": "abc", "userID": "1", "userInfo": "{not json"}).load()

    assert session.is_authenticated
    assert session.business_profile == BusinessProfile()
