"""Repository for OAuth provider identities (accounts table).

An identity is the pair (provider, provider_account_id); it is unique
across the table and always points at exactly one local user.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heartguide.models.account import Account
from heartguide.models.user import User


class AccountRepository:
    """Stateless repository for provider identities.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_user_by_identity(
        db: AsyncSession,
        provider: str,
        provider_account_id: str,
    ) -> User | None:
        """Resolve a provider identity to its local user in one query.

        Args:
            db: Async database session.
            provider: Provider name.
            provider_account_id: Provider's unique user identifier.

        Returns:
            The linked User, or None for an identity seen for the first time.
        """
        stmt = (
            select(User)
            .join(Account, Account.user_id == User.id)
            .where(
                Account.provider == provider,
                Account.provider_account_id == provider_account_id,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def link(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        provider: str,
        provider_account_id: str,
    ) -> Account:
        """Attach a provider identity to a user.

        Raises:
            sqlalchemy.exc.IntegrityError: The identity is already linked.
        """
        account = Account(
            user_id=user_id,
            provider=provider,
            provider_account_id=provider_account_id,
        )
        db.add(account)
        await db.flush()
        return account
