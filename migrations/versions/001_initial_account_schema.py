"""Initial account schema: users, accounts, sessions, codes, reset tokens, settings.

Revision ID: 001_initial_account_schema
Revises:
Create Date: 2026-10-19

- users: identity, bcrypt hash, role, verification flags
- accounts: OAuth provider identities
- sessions: SHA-256 digests of session cookie tokens
- verification_codes: email/SMS one-time codes
- password_reset_tokens: single-use reset tokens
- user_settings: notification and privacy preferences
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial_account_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _user_fk_column() -> sa.Column:
    return sa.Column(
        "user_id",
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "role", sa.String(20), server_default=sa.text("'user'"), nullable=False
        ),
        sa.Column(
            "email_verified",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "phone_verified",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("image", sa.Text(), nullable=True),
        _created_at_column(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_users_phone", "users", ["phone"])

    # =========================================================================
    # accounts
    # =========================================================================
    op.create_table(
        "accounts",
        _id_column(),
        _user_fk_column(),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_account_id", sa.String(255), nullable=False),
        _created_at_column(),
        sa.UniqueConstraint(
            "provider", "provider_account_id", name="uq_accounts_provider_account"
        ),
    )
    op.create_index("ix_accounts_user_id", "accounts", ["user_id"])

    # =========================================================================
    # sessions
    # =========================================================================
    op.create_table(
        "sessions",
        _id_column(),
        sa.Column("token", sa.String(64), unique=True, nullable=False),
        _user_fk_column(),
        sa.Column("expires", sa.DateTime(timezone=True), nullable=False),
        _created_at_column(),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])

    # =========================================================================
    # verification_codes
    # =========================================================================
    op.create_table(
        "verification_codes",
        _id_column(),
        _user_fk_column(),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("purpose", sa.String(30), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "used", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "failed_attempts",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
        ),
        _created_at_column(),
        sa.CheckConstraint(
            "purpose IN ('email_verification', 'phone_verification', "
            "'password_reset')",
            name="ck_verification_codes_purpose",
        ),
    )
    op.create_index(
        "ix_verification_codes_user_purpose",
        "verification_codes",
        ["user_id", "purpose"],
    )
    op.create_index(
        "uq_verification_codes_live",
        "verification_codes",
        ["user_id", "purpose"],
        unique=True,
        postgresql_where=sa.text("used = false"),
    )

    # =========================================================================
    # password_reset_tokens
    # =========================================================================
    op.create_table(
        "password_reset_tokens",
        _id_column(),
        _user_fk_column(),
        sa.Column("token", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "used", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _created_at_column(),
    )
    op.create_index(
        "ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"]
    )

    # =========================================================================
    # user_settings (PK is the user id)
    # =========================================================================
    op.create_table(
        "user_settings",
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "two_factor_enabled",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "two_factor_method",
            sa.String(10),
            server_default=sa.text("'email'"),
            nullable=False,
        ),
        sa.Column(
            "notify_email", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "notify_sms", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "notify_app", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "data_sharing", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "anonymous_data_collection",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "two_factor_method IN ('email', 'sms')",
            name="ck_user_settings_two_factor_method",
        ),
    )


def downgrade() -> None:
    # Reverse order of creation
    op.drop_table("user_settings")

    op.drop_index(
        "ix_password_reset_tokens_user_id", table_name="password_reset_tokens"
    )
    op.drop_table("password_reset_tokens")

    op.drop_index("uq_verification_codes_live", table_name="verification_codes")
    op.drop_index("ix_verification_codes_user_purpose", table_name="verification_codes")
    op.drop_table("verification_codes")

    op.drop_index("ix_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_accounts_user_id", table_name="accounts")
    op.drop_table("accounts")

    op.drop_index("ix_users_phone", table_name="users")
    op.drop_table("users")
