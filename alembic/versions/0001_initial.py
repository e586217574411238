"""initial schema for vocabulary, lessons, and users."""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def upgrade() -> None:
    # Tables may already exist when the server created them on startup.
    if not _has_table("vocabulary"):
        op.create_table(
            "vocabulary",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("lesson", sa.String(length=16), nullable=False),
            sa.Column("source_text", sa.String(length=60), nullable=False),
            sa.Column("target_text", sa.String(length=60), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("lesson", "source_text", "target_text", name="uq_vocabulary_lesson_source_target"),
        )
        op.create_index("idx_lesson", "vocabulary", ["lesson"], unique=False)

    if not _has_table("lessons"):
        op.create_table(
            "lessons",
            sa.Column("slug", sa.String(length=16), nullable=False),
            sa.Column("title", sa.Text(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("entry_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("slug"),
        )

    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("password_hash", sa.Text(), nullable=False),
            sa.Column("display_name", sa.String(length=128), nullable=True),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
        )


def downgrade() -> None:
    op.drop_table("users")
    op.drop_table("lessons")
    op.drop_index("idx_lesson", table_name="vocabulary")
    op.drop_table("vocabulary")
