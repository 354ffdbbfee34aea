"""Utility functions for Alembic migrations."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op


def get_uuid_type():
    """Get the UUID column type matching ``AdaptiveUUID`` for the current dialect.

    Returns:
        - PostgreSQL: native UUID type (with as_uuid=True for Python UUID objects)
        - SQLite/other: String(32) holding the hex form

    Example usage in a migration:
        from superoptimised.migrations.util import get_uuid_type

        def upgrade() -> None:
            uuid = get_uuid_type()
            op.create_table(
                'my_table',
                sa.Column('id', uuid, nullable=False),
                ...
            )
    """
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=32)
