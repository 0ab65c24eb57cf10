"""Server-side password hashing with Argon2id."""

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

argon2_ph = PasswordHasher()

# The server only ever stores:
#   - an Argon2id hash of the login password
#   - the encryption salt, generated once at signup
#   - the master key wrapped by the client under its password-derived key
# Key derivation, wrapping and message encryption all happen client side.


def get_password_hash(password: str) -> str:
    return argon2_ph.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        argon2_ph.verify(hashed_password, plain_password)
        return True
    except VerifyMismatchError:
        return False
