from aimednet.core.config import Settings
from aimednet.core.logger import get_logger, logger


def test_crypto_defaults():
    defaults = Settings()
    assert defaults.PBKDF2_ITERATIONS == 250000
    assert defaults.PBKDF2_KEY_LENGTH == 32
    assert defaults.AES_GCM_IV_SIZE == 12


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("PBKDF2_ITERATIONS", "300000")
    monkeypatch.setenv("UNDECRYPTABLE_PLACEHOLDER", "[hidden]")
    overridden = Settings()
    assert overridden.PBKDF2_ITERATIONS == 300000
    assert overridden.UNDECRYPTABLE_PLACEHOLDER == "[hidden]"


def test_get_logger():
    assert get_logger() is logger
    assert get_logger("counters").name == "aimednet.counters"
    assert get_logger("counters", override=logger) is logger
