"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _listing_columns() -> list[sa.Column]:
    """Columns shared by the equipment and brokerage tables."""
    return [
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('price_type', sa.String(length=20), server_default='DAILY', nullable=False),
        sa.Column('images', sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('features', sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column('available', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Needed for the uuid equality operator inside the exclusion constraints
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    # Create categories table
    op.create_table('categories',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("type IN ('EQUIPMENT', 'BROKERAGE')", name='ck_category_type_valid'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('type', 'name', name='uq_category_type_name')
    )
    op.create_index(op.f('ix_categories_name'), 'categories', ['name'], unique=False)
    op.create_index(op.f('ix_categories_type'), 'categories', ['type'], unique=False)

    # Create equipment table
    op.create_table('equipment',
        *_listing_columns(),
        sa.Column('condition', sa.String(length=50), nullable=True),
        sa.CheckConstraint('price >= 0', name='ck_equipment_price_non_negative'),
        sa.CheckConstraint('length(title) > 0', name='ck_equipment_title_not_empty'),
        sa.CheckConstraint(
            "price_type IN ('HOURLY', 'DAILY', 'WEEKLY', 'MONTHLY', 'FIXED')",
            name='ck_equipment_price_type_valid'
        ),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_equipment_title'), 'equipment', ['title'], unique=False)
    op.create_index(op.f('ix_equipment_available'), 'equipment', ['available'], unique=False)
    op.create_index(op.f('ix_equipment_category_id'), 'equipment', ['category_id'], unique=False)

    # Create brokerage table
    op.create_table('brokerage',
        *_listing_columns(),
        sa.CheckConstraint('price >= 0', name='ck_brokerage_price_non_negative'),
        sa.CheckConstraint('length(title) > 0', name='ck_brokerage_title_not_empty'),
        sa.CheckConstraint(
            "price_type IN ('HOURLY', 'DAILY', 'WEEKLY', 'MONTHLY', 'FIXED')",
            name='ck_brokerage_price_type_valid'
        ),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_brokerage_title'), 'brokerage', ['title'], unique=False)
    op.create_index(op.f('ix_brokerage_available'), 'brokerage', ['available'], unique=False)
    op.create_index(op.f('ix_brokerage_category_id'), 'brokerage', ['category_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('resource_type', sa.String(length=20), nullable=False),
        sa.Column('equipment_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('brokerage_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='PENDING', nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_date > start_date', name='ck_booking_dates_ordered'),
        sa.CheckConstraint('(equipment_id IS NULL) <> (brokerage_id IS NULL)', name='ck_booking_single_resource'),
        sa.CheckConstraint('total_price >= 0', name='ck_booking_total_price_non_negative'),
        sa.CheckConstraint('length(user_id) > 0', name='ck_booking_user_id_not_empty'),
        sa.CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'COMPLETED')", name='ck_booking_status_valid'),
        sa.CheckConstraint(
            "(resource_type = 'EQUIPMENT' AND equipment_id IS NOT NULL)"
            " OR (resource_type = 'BROKERAGE' AND brokerage_id IS NOT NULL)",
            name='ck_booking_resource_type_matches'
        ),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['brokerage_id'], ['brokerage.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_equipment_dates', 'bookings', ['equipment_id', 'start_date', 'end_date'], unique=False)
    op.create_index('ix_bookings_brokerage_dates', 'bookings', ['brokerage_id', 'start_date', 'end_date'], unique=False)

    # No two active bookings of one resource may share an instant. Ranges are
    # half-open, so back-to-back bookings are allowed.
    for column in ('equipment_id', 'brokerage_id'):
        resource = column.split('_')[0]
        op.execute(
            f"""
            ALTER TABLE bookings
            ADD CONSTRAINT ex_bookings_{resource}_no_overlap
            EXCLUDE USING gist (
                {column} WITH =,
                tsrange(start_date, end_date, '[)') WITH &&
            )
            WHERE ({column} IS NOT NULL AND status IN ('PENDING', 'CONFIRMED'))
            """
        )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('bookings')
    op.drop_table('brokerage')
    op.drop_table('equipment')
    op.drop_table('categories')
