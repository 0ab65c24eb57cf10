"""Profile key fields: the salt (read only) and the wrapped master key."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import update
from sqlmodel import Session, col

from aimednet.api.v1.routes.auth import get_current_user
from aimednet.core.db import get_db_session
from aimednet.core.logger import logger
from aimednet.core.realtime import publish_change
from aimednet.crypto.cipher import validate_encrypted_format
from aimednet.models.user import User
from aimednet.schemas.profiles import MasterKeyUpdate, ProfileKeys

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me/keys", response_model=ProfileKeys)
def get_profile_keys(current_user: User = Depends(get_current_user)) -> ProfileKeys:
    return ProfileKeys(
        encryption_salt=current_user.encryption_salt,
        encrypted_user_master_key=current_user.encrypted_user_master_key,
    )


def _require_encrypted_payload(key_update: MasterKeyUpdate) -> None:
    if not validate_encrypted_format(key_update.encrypted_user_master_key, logger=logger):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="encrypted_user_master_key must be an iv.ciphertext payload",
        )


@router.post(
    "/me/master-key", response_model=ProfileKeys, status_code=status.HTTP_201_CREATED
)
def create_encrypted_master_key(
    key_update: MasterKeyUpdate,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> ProfileKeys:
    """
    Store the first wrapped master key of an account.

    The write only lands while the field is still empty, so two devices
    bootstrapping at once cannot overwrite each other; the loser gets 409.
    """
    _require_encrypted_payload(key_update)

    statement = (
        update(User)
        .where(
            col(User.id) == current_user.id,
            col(User.encrypted_user_master_key).is_(None),
        )
        .values(
            encrypted_user_master_key=key_update.encrypted_user_master_key,
            updated_at=datetime.now(UTC),
        )
    )
    result = db_session.exec(statement)
    db_session.commit()
    if result.rowcount == 0:
        logger.info(f"User {current_user.id} already has a master key; create refused")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A master key already exists for this account",
        )

    db_session.refresh(current_user)
    publish_change("profiles", "UPDATE", {"id": current_user.id})
    return ProfileKeys(
        encryption_salt=current_user.encryption_salt,
        encrypted_user_master_key=current_user.encrypted_user_master_key,
    )


@router.put("/me/master-key", response_model=ProfileKeys)
def save_encrypted_master_key(
    key_update: MasterKeyUpdate,
    current_user: User = Depends(get_current_user),
    db_session: Session = Depends(get_db_session),
) -> ProfileKeys:
    """
    Replace the wrapped master key wholesale.

    The value is opaque to the server; only its `iv.ciphertext` shape is checked.
    There is intentionally no route that writes `encryption_salt`.
    """
    _require_encrypted_payload(key_update)

    current_user.encrypted_user_master_key = key_update.encrypted_user_master_key
    current_user.updated_at = datetime.now(UTC)
    db_session.add(current_user)
    db_session.commit()
    db_session.refresh(current_user)

    publish_change("profiles", "UPDATE", {"id": current_user.id})
    return ProfileKeys(
        encryption_salt=current_user.encryption_salt,
        encrypted_user_master_key=current_user.encrypted_user_master_key,
    )
