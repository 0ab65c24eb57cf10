import json

import pytest

from aimednet.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    KeyLockedError,
    MasterKeyUnwrapError,
)
from aimednet.crypto.cipher import decrypt, encrypt
from aimednet.crypto.keys import (
    conversation_key,
    derive_key,
    export_master_key,
    generate_master_key,
    generate_salt,
    import_master_key,
    unwrap_master_key,
    wrap_master_key,
)

SALT = "0f1e2d3c4b5a69788796a5b4c3d2e1f0"


def opens(payload, key):
    try:
        decrypt(payload, key)
    except DecryptionError:
        return False
    return True


def test_generate_salt_is_random_hex():
    first, second = generate_salt(), generate_salt()
    assert first != second
    assert len(first) == 32
    int(first, 16)


def test_derivation_is_deterministic():
    payload = encrypt("sample", derive_key("Password1!", SALT))
    assert decrypt(payload, derive_key("Password1!", SALT)) == "sample"


def test_different_salt_or_password_gives_different_key():
    payload = encrypt("sample", derive_key("Password1!", SALT))
    assert not opens(payload, derive_key("Password1!", generate_salt()))
    assert not opens(payload, derive_key("Password2!", SALT))


def test_iterations_are_part_of_the_key():
    payload = encrypt("sample", derive_key("Password1!", SALT, iterations=1000))
    assert not opens(payload, derive_key("Password1!", SALT, iterations=1001))


@pytest.mark.parametrize("salt", [None, ""])
def test_missing_salt_is_a_configuration_error(salt):
    with pytest.raises(ConfigurationError):
        derive_key("Password1!", salt)


def test_export_is_a_symmetric_jwk():
    jwk = json.loads(export_master_key(generate_master_key()))

    assert jwk["kty"] == "oct"
    assert jwk["alg"] == "A256GCM"
    assert jwk["ext"] is True
    assert jwk["key_ops"] == ["encrypt", "decrypt"]
    assert "=" not in jwk["k"]


def test_export_import_preserves_the_key():
    master_key = generate_master_key()
    imported = import_master_key(export_master_key(master_key))
    assert decrypt(encrypt("sample", master_key), imported) == "sample"


@pytest.mark.parametrize(
    "serialized",
    ["not json", "[]", '{"kty": "RSA", "k": "abc"}', '{"kty": "oct", "k": "c2hvcnQ"}'],
)
def test_import_rejects_non_aes_keys(serialized):
    with pytest.raises(DecryptionError):
        import_master_key(serialized)


def test_wrap_and_unwrap():
    personal_key = derive_key("Password1!", SALT)
    master_key = generate_master_key()
    wrapped = wrap_master_key(export_master_key(master_key), personal_key)

    unwrapped = unwrap_master_key(wrapped, derive_key("Password1!", SALT))
    assert decrypt(encrypt("sample", master_key), unwrapped) == "sample"


def test_unwrap_with_wrong_password_fails():
    wrapped = wrap_master_key(
        export_master_key(generate_master_key()), derive_key("Password1!", SALT)
    )
    with pytest.raises(MasterKeyUnwrapError):
        unwrap_master_key(wrapped, derive_key("WrongPass1!", SALT))


def test_unwrap_of_corrupted_field_fails():
    with pytest.raises(MasterKeyUnwrapError):
        unwrap_master_key("garbage", derive_key("Password1!", SALT))


def test_password_change_with_new_master_key_orphans_old_messages():
    old_master = generate_master_key()
    old_wrapped = wrap_master_key(
        export_master_key(old_master), derive_key("OldPass1!", SALT)
    )
    old_message = encrypt("before the reset", old_master)

    with pytest.raises(MasterKeyUnwrapError):
        unwrap_master_key(old_wrapped, derive_key("NewPass2!", SALT))

    new_master = generate_master_key()
    wrapped = wrap_master_key(
        export_master_key(new_master), derive_key("NewPass2!", SALT)
    )

    with pytest.raises(MasterKeyUnwrapError):
        unwrap_master_key(wrapped, derive_key("OldPass1!", SALT))

    reopened = unwrap_master_key(wrapped, derive_key("NewPass2!", SALT))
    assert not opens(old_message, reopened)
    assert decrypt(encrypt("after the reset", new_master), reopened) == "after the reset"


def test_conversation_keys_are_stable_and_distinct():
    master_key = generate_master_key()
    payload = encrypt("sample", conversation_key(master_key, 7))

    assert decrypt(payload, conversation_key(master_key, 7)) == "sample"
    assert decrypt(payload, conversation_key(master_key, "7")) == "sample"
    assert not opens(payload, conversation_key(master_key, 8))
    assert not opens(payload, master_key)


def test_cleared_key_refuses_to_work():
    key = generate_master_key()
    key.clear()

    assert key.cleared
    assert repr(key) == "<MasterKey cleared>"
    with pytest.raises(KeyLockedError):
        encrypt("sample", key)


def test_repr_hides_material():
    key = generate_master_key()
    assert repr(key) == "<MasterKey active>"
    assert export_master_key(key) not in repr(key)
