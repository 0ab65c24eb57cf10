import asyncio

import pytest

from aimednet.client.keyring import KeySession
from aimednet.client.password_reset import DATA_LOSS_WARNING, PasswordResetFlow, ResetState
from aimednet.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    KeyRotationInconsistentError,
    MasterKeyUnwrapError,
    PasswordResetError,
)
from aimednet.crypto.keys import derive_key, unwrap_master_key

from fakes import FakeAuth, FakeProfileStore

OLD_PASSWORD = "OldPass1!"
NEW_PASSWORD = "NewPass2!"


@pytest.fixture
def profiles():
    return FakeProfileStore()


@pytest.fixture
def keyring(profiles):
    session = KeySession(profiles)
    asyncio.run(session.unlock(OLD_PASSWORD))
    return session


def run_reset(flow, new=NEW_PASSWORD, confirm=NEW_PASSWORD, acknowledge=True):
    asyncio.run(flow.run(new, confirm, acknowledge_data_loss=acknowledge))


def test_reset_rotates_master_key_and_signs_out(profiles, keyring):
    old_message = keyring.encrypt_message(1, "written before the reset")
    old_wrapped = profiles.keys.encrypted_user_master_key
    auth = FakeAuth()
    flow = PasswordResetFlow(auth, profiles, keyring)

    run_reset(flow)

    assert flow.state is ResetState.SIGNED_OUT
    assert auth.passwords == [NEW_PASSWORD]
    assert auth.sign_outs == 1
    assert not keyring.is_unlocked

    new_wrapped = profiles.keys.encrypted_user_master_key
    assert new_wrapped != old_wrapped
    salt = profiles.keys.encryption_salt
    with pytest.raises(MasterKeyUnwrapError):
        unwrap_master_key(new_wrapped, derive_key(OLD_PASSWORD, salt))
    unwrap_master_key(new_wrapped, derive_key(NEW_PASSWORD, salt))

    relocked = KeySession(profiles)
    asyncio.run(relocked.unlock(NEW_PASSWORD))
    with pytest.raises(DecryptionError):
        relocked.decrypt_message(1, old_message)


def test_salt_is_never_changed(profiles, keyring):
    salt = profiles.keys.encryption_salt
    run_reset(PasswordResetFlow(FakeAuth(), profiles, keyring))
    assert profiles.keys.encryption_salt == salt


def test_refuses_without_data_loss_acknowledgement(profiles, keyring):
    auth = FakeAuth()
    flow = PasswordResetFlow(auth, profiles, keyring)

    with pytest.raises(PasswordResetError, match="permanently lose access"):
        run_reset(flow, acknowledge=False)

    assert str(flow.error) == DATA_LOSS_WARNING
    assert flow.state is ResetState.FAILED
    assert auth.passwords == []
    assert len(profiles.saved) == 1
    assert keyring.is_unlocked


@pytest.mark.parametrize(
    "new, confirm, message",
    [
        ("NewPass2!", "NewPass3!", "do not match"),
        ("short", "short", "at least 8 characters"),
    ],
)
def test_rejects_invalid_passwords(profiles, new, confirm, message):
    auth = FakeAuth()
    flow = PasswordResetFlow(auth, profiles)

    with pytest.raises(PasswordResetError, match=message):
        run_reset(flow, new=new, confirm=confirm)
    assert auth.passwords == []


def test_requires_signed_in_user(profiles):
    flow = PasswordResetFlow(FakeAuth(signed_in=False), profiles)
    with pytest.raises(PasswordResetError, match="logged in"):
        run_reset(flow)


def test_missing_salt_aborts_before_any_change():
    profiles = FakeProfileStore(encryption_salt=None)
    auth = FakeAuth()
    flow = PasswordResetFlow(auth, profiles)

    with pytest.raises(ConfigurationError, match="Missing encryption salt"):
        run_reset(flow)

    assert flow.state is ResetState.FAILED
    assert auth.passwords == []
    assert profiles.saved == []


def test_password_update_failure_changes_nothing(profiles, keyring):
    auth = FakeAuth()
    auth.fail_update = True
    flow = PasswordResetFlow(auth, profiles, keyring)

    with pytest.raises(PasswordResetError, match="nothing was changed") as excinfo:
        run_reset(flow)

    assert not excinfo.value.requires_support
    assert len(profiles.saved) == 1
    assert keyring.is_unlocked


def test_key_save_failure_is_reported_as_inconsistent(profiles, keyring):
    auth = FakeAuth()
    profiles.fail_save = True
    flow = PasswordResetFlow(auth, profiles, keyring)

    with pytest.raises(KeyRotationInconsistentError) as excinfo:
        run_reset(flow)

    assert excinfo.value.requires_support
    assert auth.passwords == [NEW_PASSWORD]
    assert flow.state is ResetState.FAILED


def test_sign_out_failure_still_locks_keys(profiles, keyring):
    auth = FakeAuth()
    auth.fail_sign_out = True
    flow = PasswordResetFlow(auth, profiles, keyring)

    run_reset(flow)

    assert flow.state is ResetState.SIGNED_OUT
    assert not keyring.is_unlocked


def test_flow_is_single_use(profiles):
    flow = PasswordResetFlow(FakeAuth(), profiles)
    run_reset(flow)

    with pytest.raises(PasswordResetError, match="already run"):
        run_reset(flow)
