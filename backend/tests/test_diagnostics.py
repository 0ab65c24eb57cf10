import logging

from aimednet.crypto.diagnostics import (
    describe_key,
    keys_equivalent,
    round_trip_check,
    run_health_check,
)
from aimednet.crypto.keys import (
    derive_key,
    export_master_key,
    generate_master_key,
    import_master_key,
    wrap_master_key,
)

SALT = "00112233445566778899aabbccddeeff"


def healthy_keys():
    personal_key = derive_key("Password1!", SALT)
    master_key = generate_master_key()
    return master_key, personal_key, wrap_master_key(export_master_key(master_key), personal_key)


def test_round_trip_check():
    assert round_trip_check(generate_master_key()) is True


def test_round_trip_check_on_cleared_key():
    key = generate_master_key()
    key.clear()
    assert round_trip_check(key) is False


def test_keys_equivalent():
    key = generate_master_key()
    assert keys_equivalent(key, import_master_key(export_master_key(key)))
    assert not keys_equivalent(key, generate_master_key())


def test_describe_key_never_exposes_material(caplog):
    key = generate_master_key()
    with caplog.at_level(logging.INFO, logger="aimednet"):
        info = describe_key(key, label="master")

    assert info == {"kind": "master", "cleared": False, "algorithm": "AES-GCM-256"}
    assert export_master_key(key) not in caplog.text
    assert describe_key(None) is None


def test_healthy_session_passes():
    report = run_health_check(*healthy_keys())
    assert report.passed
    assert report.failures == []
    assert report.warnings == []


def test_missing_wrapped_key_is_only_a_warning():
    master_key, personal_key, _ = healthy_keys()
    report = run_health_check(master_key, personal_key, None)

    assert report.passed
    assert len(report.warnings) == 1


def test_missing_keys_fail():
    report = run_health_check(None, None, None)
    assert not report.passed
    assert "personal key missing" in report.failures
    assert "master key missing" in report.failures


def test_invalid_wrapped_format_fails():
    master_key, personal_key, _ = healthy_keys()
    report = run_health_check(master_key, personal_key, "not-a-payload")

    assert not report.passed
    assert "wrapped master key has an invalid format" in report.failures


def test_stored_key_must_match_memory():
    _, personal_key, wrapped = healthy_keys()
    report = run_health_check(generate_master_key(), personal_key, wrapped)

    assert not report.passed
    assert "stored master key differs from the one in memory" in report.failures


def test_wrapped_key_under_another_password_fails():
    master_key, _, wrapped = healthy_keys()
    report = run_health_check(master_key, derive_key("Other1234!", SALT), wrapped)

    assert not report.passed
    assert "wrapped master key does not open with the personal key" in report.failures
