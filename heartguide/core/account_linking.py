"""Resolve an OAuth profile to a local user.

Rules, in order:
1. Known provider identity: the linked user signs in.
2. Email matches a local user and both the provider and the local account
   vouch for it: the identity is linked to that user.
3. Email matches but either side is unverified: rejected. Linking here
   would let someone who pre-registered a victim's email inherit the
   victim's later OAuth sign-in.
4. No match: a new user is created with the identity attached.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.core.errors import OAuthAccountConflictError, OAuthEmailMissingError
from heartguide.core.oauth_client import OAuthProfile
from heartguide.models.user import User
from heartguide.repositories.account_repository import AccountRepository
from heartguide.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


async def _link_existing(db: AsyncSession, user: User, profile: OAuthProfile) -> User:
    if not (profile.email_verified and user.email_verified):
        logger.warning(
            "OAuth account linking blocked by email verification",
            extra={
                "provider": profile.provider,
                "provider_verified": profile.email_verified,
                "existing_verified": user.email_verified,
            },
        )
        raise OAuthAccountConflictError()

    await AccountRepository.link(
        db,
        user_id=user.id,
        provider=profile.provider,
        provider_account_id=profile.provider_account_id,
    )
    logger.info(
        "Linked OAuth account to existing user",
        extra={"user_id": str(user.id), "provider": profile.provider},
    )
    return user


async def _create_with_identity(
    db: AsyncSession, email: str, profile: OAuthProfile
) -> User:
    user = await UserRepository.create(
        db,
        email=email,
        name=profile.name,
        image=profile.image,
        email_verified=profile.email_verified,
    )
    await AccountRepository.link(
        db,
        user_id=user.id,
        provider=profile.provider,
        provider_account_id=profile.provider_account_id,
    )
    logger.info(
        "Created new OAuth user",
        extra={"user_id": str(user.id), "provider": profile.provider},
    )
    return user


async def find_or_create_user_for_oauth(
    *,
    db: AsyncSession,
    profile: OAuthProfile,
) -> tuple[User, bool]:
    """Find or create the local user for an OAuth profile.

    Args:
        db: Async database session. Nothing is committed here.
        profile: Normalized provider profile.

    Returns:
        Tuple of (User, created) where created is True if a new user was made.

    Raises:
        OAuthAccountConflictError: The email belongs to a local account that
            cannot safely be linked.
        OAuthEmailMissingError: New identity without an email from the provider.
    """
    known = await AccountRepository.get_user_by_identity(
        db, profile.provider, profile.provider_account_id
    )
    if known is not None:
        logger.info(
            "Returning OAuth user",
            extra={"user_id": str(known.id), "provider": profile.provider},
        )
        return known, False

    if not profile.email:
        raise OAuthEmailMissingError()
    email = profile.email.strip().lower()

    existing = await UserRepository.get_by_email(db, email)
    if existing is not None:
        return await _link_existing(db, existing, profile), False

    return await _create_with_identity(db, email, profile), True
