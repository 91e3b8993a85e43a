"""initial booking engine schema

Revision ID: 20261018000000
Revises: 
Create Date: 2026-10-18 00:00:00.000000

Creates every table from the model definitions, then adds the PostgreSQL-only
exclusion constraint that rejects overlapping non-cancelled appointments for
the same provider.
"""
from typing import Sequence, Union

from alembic import op

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '20261018000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()

    # Tables, indexes (including the partial unique index on appointment
    # slots), check and unique constraints come straight from the models
    Base.metadata.create_all(bind=bind)

    if bind.dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute("""
            ALTER TABLE appointments
            ADD CONSTRAINT excl_appointments_provider_overlap
            EXCLUDE USING gist (
                provider_id WITH =,
                tsrange(appointment_date + start_time, appointment_date + end_time) WITH &&
            )
            WHERE (status <> 'cancelled')
        """)


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS excl_appointments_provider_overlap")
    Base.metadata.drop_all(bind=bind)
