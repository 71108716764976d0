"""001 Bokun cache tables

Revision ID: 001_bokun_cache
Revises:
Create Date: 2026-10-19

- bokun_products: product id <-> local tour type mapping
- bokun_bookings_cache: one row per Bokun booking id (upsert target)
- bokun_availability_cache: spot counts per (product, date, time slot)
- bokun_cache_metadata: per-product full sync status
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_bokun_cache'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'bokun_products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('local_tour_type', sa.String(100), nullable=False),
        sa.Column('bokun_product_id', sa.String(100), nullable=False),
        sa.Column('bokun_variant_id', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('local_tour_type', 'bokun_product_id', name='uq_bokun_product_tour_type'),
    )
    op.create_index('ix_bokun_products_tour_type', 'bokun_products', ['local_tour_type'])

    op.create_table(
        'bokun_bookings_cache',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('bokun_booking_id', sa.String(100), nullable=False, unique=True),
        sa.Column('product_id', sa.String(100), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('booking_time', sa.String(10), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='CONFIRMED'),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('adults', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('children', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('infants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('tour_type', sa.String(100), nullable=False),
        sa.Column('tour_name', sa.String(255), nullable=True),
        sa.Column('confirmation_code', sa.String(120), nullable=True),
        sa.Column('external_source', sa.String(50), nullable=False, server_default='bokun'),
        sa.Column('raw_bokun_data', sa.JSON(), nullable=True),
        sa.Column('last_synced', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_bokun_cache_booking_date', 'bokun_bookings_cache', ['booking_date'])
    op.create_index('ix_bokun_cache_product_id', 'bokun_bookings_cache', ['product_id'])
    op.create_index('ix_bokun_cache_customer_email', 'bokun_bookings_cache', ['customer_email'])
    op.create_index('ix_bokun_cache_status', 'bokun_bookings_cache', ['status'])
    op.create_index('ix_bokun_cache_date_tour', 'bokun_bookings_cache', ['booking_date', 'tour_type'])

    op.create_table(
        'bokun_availability_cache',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('bokun_product_id', sa.String(100), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.String(10), nullable=False),
        sa.Column('available_spots', sa.Integer(), nullable=False),
        sa.Column('cached_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('bokun_product_id', 'date', 'time_slot', name='uq_bokun_availability_slot'),
    )
    op.create_index('ix_bokun_availability_product_date', 'bokun_availability_cache', ['bokun_product_id', 'date'])
    op.create_index('ix_bokun_availability_expires', 'bokun_availability_cache', ['expires_at'])

    op.create_table(
        'bokun_cache_metadata',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('product_id', sa.String(100), nullable=False, unique=True),
        sa.Column('last_full_sync', sa.DateTime(), nullable=True),
        sa.Column('total_bookings_cached', sa.Integer(), server_default='0'),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='idle'),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade():
    op.drop_table('bokun_cache_metadata')
    op.drop_index('ix_bokun_availability_expires', table_name='bokun_availability_cache')
    op.drop_index('ix_bokun_availability_product_date', table_name='bokun_availability_cache')
    op.drop_table('bokun_availability_cache')
    op.drop_index('ix_bokun_cache_date_tour', table_name='bokun_bookings_cache')
    op.drop_index('ix_bokun_cache_status', table_name='bokun_bookings_cache')
    op.drop_index('ix_bokun_cache_customer_email', table_name='bokun_bookings_cache')
    op.drop_index('ix_bokun_cache_product_id', table_name='bokun_bookings_cache')
    op.drop_index('ix_bokun_cache_booking_date', table_name='bokun_bookings_cache')
    op.drop_table('bokun_bookings_cache')
    op.drop_index('ix_bokun_products_tour_type', table_name='bokun_products')
    op.drop_table('bokun_products')
