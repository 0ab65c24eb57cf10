import asyncio

import pytest

from aimednet.client.keyring import KeySession
from aimednet.core.config import settings
from aimednet.core.exceptions import (
    BackendError,
    ConfigurationError,
    KeyLockedError,
    MasterKeyUnwrapError,
)
from aimednet.crypto.keys import generate_master_key
from aimednet.crypto.cipher import encrypt

from fakes import FakeProfileStore


def unlocked_session(password="Password1!", profiles=None):
    profiles = profiles or FakeProfileStore()
    session = KeySession(profiles)
    asyncio.run(session.unlock(password))
    return session, profiles


def test_first_unlock_creates_and_saves_master_key():
    session, profiles = unlocked_session()

    assert session.is_unlocked
    assert len(profiles.saved) == 1
    assert profiles.keys.encrypted_user_master_key == profiles.saved[0]
    assert session.health_check().passed


def test_second_unlock_reuses_stored_master_key():
    first, profiles = unlocked_session()
    payload = first.encrypt_message(1, "hello")

    second, _ = unlocked_session(profiles=profiles)

    assert len(profiles.saved) == 1
    assert second.decrypt_message(1, payload) == "hello"


def test_wrong_password_does_not_replace_master_key():
    _, profiles = unlocked_session()
    session = KeySession(profiles)

    with pytest.raises(MasterKeyUnwrapError):
        asyncio.run(session.unlock("WrongPass1!"))

    assert not session.is_unlocked
    assert len(profiles.saved) == 1


def test_missing_salt_refuses_to_unlock():
    session = KeySession(FakeProfileStore(encryption_salt=None))
    with pytest.raises(ConfigurationError):
        asyncio.run(session.unlock("Password1!"))
    assert not session.is_unlocked


def test_failed_bootstrap_save_leaves_session_locked():
    profiles = FakeProfileStore()
    profiles.fail_save = True
    session = KeySession(profiles)

    with pytest.raises(BackendError):
        asyncio.run(session.unlock("Password1!"))
    assert not session.is_unlocked


def test_concurrent_first_unlock_adopts_the_stored_master_key():
    other_device, other_profiles = unlocked_session()
    payload = other_device.encrypt_message(1, "from the other device")

    profiles = FakeProfileStore()
    profiles.created_elsewhere = other_profiles.saved[0]
    session, _ = unlocked_session(profiles=profiles)

    assert profiles.saved == []
    assert profiles.keys.encrypted_user_master_key == other_profiles.saved[0]
    assert session.decrypt_message(1, payload) == "from the other device"


def test_messages_are_bound_to_their_conversation():
    session, _ = unlocked_session()
    payload = session.encrypt_message(1, "for conversation one")

    assert session.decrypt_message(1, payload) == "for conversation one"
    assert session.decrypt_for_display(2, payload) == settings.UNDECRYPTABLE_PLACEHOLDER


def test_undecryptable_body_shows_placeholder():
    session, _ = unlocked_session()
    foreign = encrypt("under another key", generate_master_key())

    assert session.decrypt_for_display(1, foreign) == settings.UNDECRYPTABLE_PLACEHOLDER
    assert session.decrypt_for_display(1, "garbage") == settings.UNDECRYPTABLE_PLACEHOLDER


def test_lock_clears_keys():
    session, _ = unlocked_session()
    session.lock()

    assert not session.is_unlocked
    with pytest.raises(KeyLockedError):
        session.encrypt_message(1, "hello")
    assert not session.health_check().passed
