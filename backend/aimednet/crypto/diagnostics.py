"""Troubleshooting helpers for the key hierarchy.

Nothing here logs or exports key material; keys are compared by
cross-decryption only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from aimednet.core.exceptions import AIMedNetError, DecryptionError
from aimednet.core.logger import get_logger
from aimednet.crypto.cipher import decrypt, encrypt, validate_encrypted_format
from aimednet.crypto.keys import MasterKey, PersonalKey, SymmetricKey, unwrap_master_key

DEFAULT_PROBE = "Test message 🔐"


@dataclass
class HealthReport:
    passed: bool = True
    failures: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def fail(self, reason: str) -> None:
        self.passed = False
        self.failures.append(reason)


def describe_key(
    key: SymmetricKey | None,
    label: str = "key",
    logger: logging.Logger | None = None,
) -> dict | None:
    log = get_logger("diagnostics", logger)
    if key is None:
        log.info(f"{label}: none")
        return None
    info = {"kind": key.kind, "cleared": key.cleared, "algorithm": "AES-GCM-256"}
    log.info(f"{label}: {info}")
    return info


def round_trip_check(
    key: SymmetricKey,
    message: str = DEFAULT_PROBE,
    logger: logging.Logger | None = None,
) -> bool:
    """Encrypt then decrypt `message` and compare."""
    log = get_logger("diagnostics", logger)
    try:
        payload = encrypt(message, key)
        if not validate_encrypted_format(payload, logger=log):
            log.error("Round trip produced a malformed payload")
            return False
        matches = decrypt(payload, key) == message
    except AIMedNetError as exc:
        log.error(f"Round trip failed: {exc}")
        return False

    if not matches:
        log.error("Round trip returned a different message")
    return matches


def keys_equivalent(a: SymmetricKey, b: SymmetricKey) -> bool:
    """True if a payload encrypted under `a` opens under `b`."""
    try:
        return decrypt(encrypt(DEFAULT_PROBE, a), b) == DEFAULT_PROBE
    except DecryptionError:
        return False


def run_health_check(
    master_key: MasterKey | None,
    personal_key: PersonalKey | None,
    encrypted_master_key: str | None,
    logger: logging.Logger | None = None,
) -> HealthReport:
    log = get_logger("diagnostics", logger)
    report = HealthReport()

    if personal_key is None or personal_key.cleared:
        report.fail("personal key missing")
    if master_key is None or master_key.cleared:
        report.fail("master key missing")

    if not encrypted_master_key:
        report.warnings.append("no wrapped master key stored (new account?)")
    elif not validate_encrypted_format(encrypted_master_key, logger=log):
        report.fail("wrapped master key has an invalid format")

    if master_key is not None and not master_key.cleared:
        if not round_trip_check(master_key, logger=log):
            report.fail("master key round trip failed")

        if (
            encrypted_master_key
            and personal_key is not None
            and not personal_key.cleared
            and not report.failures
        ):
            try:
                stored = unwrap_master_key(encrypted_master_key, personal_key)
            except DecryptionError:
                report.fail("wrapped master key does not open with the personal key")
            else:
                if not keys_equivalent(stored, master_key):
                    report.fail("stored master key differs from the one in memory")
                stored.clear()

    for warning in report.warnings:
        log.warning(f"Encryption health: {warning}")
    for failure in report.failures:
        log.error(f"Encryption health: {failure}")
    log.info(f"Encryption health check {'passed' if report.passed else 'failed'}")
    return report
