from aimednet.crypto.cipher import decrypt, encrypt, validate_encrypted_format
from aimednet.crypto.keys import (
    MasterKey,
    PersonalKey,
    conversation_key,
    derive_key,
    export_master_key,
    generate_master_key,
    generate_salt,
    import_master_key,
    unwrap_master_key,
    wrap_master_key,
)

__all__ = [
    "MasterKey",
    "PersonalKey",
    "conversation_key",
    "decrypt",
    "derive_key",
    "encrypt",
    "export_master_key",
    "generate_master_key",
    "generate_salt",
    "import_master_key",
    "unwrap_master_key",
    "validate_encrypted_format",
    "wrap_master_key",
]
