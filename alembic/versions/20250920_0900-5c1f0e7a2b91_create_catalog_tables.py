"""Create catalog tables

Revision ID: 5c1f0e7a2b91
Revises:
Create Date: 2025-09-20 09:00:12.418230

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '5c1f0e7a2b91'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Catalog items, images, taxonomy, discovery provenance and the refresh queue"""

    op.create_table('catalog_items',
        sa.Column('item_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('item_type', sa.String(), nullable=False),
        sa.Column('asset_type_id', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=True),
        sa.Column('is_for_sale', sa.Boolean(), nullable=True),
        sa.Column('is_limited', sa.Boolean(), nullable=True),
        sa.Column('is_limited_unique', sa.Boolean(), nullable=True),
        sa.Column('remaining', sa.Integer(), nullable=True),
        sa.Column('creator_id', sa.BigInteger(), nullable=True),
        sa.Column('creator_target_id', sa.BigInteger(), nullable=True),
        sa.Column('creator_name', sa.String(), nullable=True),
        sa.Column('creator_type', sa.String(), nullable=True),
        sa.Column('creator_has_verified_badge', sa.Boolean(), nullable=True),
        sa.Column('product_id', sa.BigInteger(), nullable=True),
        sa.Column('price_status', sa.String(), nullable=True),
        sa.Column('lowest_price', sa.Integer(), nullable=True),
        sa.Column('lowest_resale_price', sa.Integer(), nullable=True),
        sa.Column('collectible_item_id', sa.String(), nullable=True),
        sa.Column('favorite_count', sa.Integer(), nullable=True),
        sa.Column('has_resellers', sa.Boolean(), nullable=True),
        sa.Column('total_quantity', sa.Integer(), nullable=True),
        sa.Column('units_available_for_consumption', sa.Integer(), nullable=True),
        sa.Column('quantity_limit_per_user', sa.Integer(), nullable=True),
        sa.Column('sale_location_type', sa.String(), nullable=True),
        sa.Column('off_sale_deadline', sa.String(), nullable=True),
        sa.Column('item_status', sa.JSON(), nullable=True),
        sa.Column('item_restrictions', sa.JSON(), nullable=True),
        sa.Column('bundled_items', sa.JSON(), nullable=True),
        sa.Column('raw_search_json', sa.JSON(), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('raw_detail_json', sa.JSON(), nullable=True),
        sa.Column('last_enriched_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('item_id')
    )
    op.create_index('ix_catalog_items_category', 'catalog_items', ['category'])
    op.create_index('ix_catalog_items_subcategory', 'catalog_items', ['subcategory'])
    op.create_index('ix_catalog_items_is_deleted', 'catalog_items', ['is_deleted'])

    op.create_table('item_images',
        sa.Column('item_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('size', sa.String(), nullable=False),
        sa.Column('format', sa.String(), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('state', sa.String(), nullable=True),
        sa.Column('version', sa.String(), nullable=True),
        sa.Column('last_checked_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('item_id', 'size', 'format')
    )

    op.create_table('catalog_categories',
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=True),
        sa.Column('is_searchable', sa.Boolean(), nullable=True),
        sa.Column('asset_type_ids', sa.JSON(), nullable=True),
        sa.Column('bundle_type_ids', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('category')
    )

    op.create_table('catalog_subcategories',
        sa.Column('subcategory', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('short_name', sa.String(), nullable=True),
        sa.Column('subcategory_id', sa.Integer(), nullable=True),
        sa.Column('asset_type_ids', sa.JSON(), nullable=True),
        sa.Column('bundle_type_ids', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('subcategory')
    )
    op.create_index('ix_catalog_subcategories_category', 'catalog_subcategories', ['category'])

    op.create_table('discovery_runs',
        sa.Column('run_id', sa.Uuid(), nullable=False),
        sa.Column('strategy', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('queries_issued', sa.Integer(), nullable=False),
        sa.Column('pages_fetched', sa.Integer(), nullable=False),
        sa.Column('items_seen', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('run_id')
    )
    op.create_index('ix_discovery_runs_status', 'discovery_runs', ['status'])

    op.create_table('discovery_hits',
        sa.Column('run_id', sa.Uuid(), nullable=False),
        sa.Column('item_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('query_hash', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('subcategory', sa.String(), nullable=True),
        sa.Column('keyword', sa.String(), nullable=True),
        sa.Column('sort_type', sa.String(), nullable=True),
        sa.Column('cursor_page', sa.Integer(), nullable=False),
        sa.Column('seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('run_id', 'item_id')
    )
    op.create_index('ix_discovery_hits_query_hash', 'discovery_hits', ['query_hash'])

    op.create_table('refresh_queue',
        sa.Column('item_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('priority', sa.String(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.String(), nullable=True),
        sa.Column('next_run_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('item_id')
    )
    op.create_index('ix_refresh_queue_next_run_at', 'refresh_queue', ['next_run_at'])


def downgrade() -> None:
    """Drop every catalog table"""
    op.drop_index('ix_refresh_queue_next_run_at', table_name='refresh_queue')
    op.drop_table('refresh_queue')
    op.drop_index('ix_discovery_hits_query_hash', table_name='discovery_hits')
    op.drop_table('discovery_hits')
    op.drop_index('ix_discovery_runs_status', table_name='discovery_runs')
    op.drop_table('discovery_runs')
    op.drop_index('ix_catalog_subcategories_category', table_name='catalog_subcategories')
    op.drop_table('catalog_subcategories')
    op.drop_table('catalog_categories')
    op.drop_table('item_images')
    op.drop_index('ix_catalog_items_is_deleted', table_name='catalog_items')
    op.drop_index('ix_catalog_items_subcategory', table_name='catalog_items')
    op.drop_index('ix_catalog_items_category', table_name='catalog_items')
    op.drop_table('catalog_items')
