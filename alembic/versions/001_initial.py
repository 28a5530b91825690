"""Initial database schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SEARCH_INDEX_TABLES = (
    ('user_search_index', 'users'),
    ('client_search_index', 'clients'),
    ('enquiry_search_index', 'enquiries'),
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('uuid_generate_v4()'))


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # Roles and permissions
    op.create_table(
        'roles',
        _uuid_pk(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_superuser', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'permissions',
        _uuid_pk(),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('resource', sa.String(100), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_permissions_resource', 'permissions', ['resource'])

    op.create_table(
        'role_permissions',
        sa.Column('role_id', sa.UUID(), nullable=False),
        sa.Column('permission_id', sa.UUID(), nullable=False),
        sa.PrimaryKeyConstraint('role_id', 'permission_id'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permission_id'], ['permissions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_role_permissions_permission_id', 'role_permissions', ['permission_id'])

    op.create_table(
        'role_hierarchy',
        sa.Column('parent_role_id', sa.UUID(), nullable=False),
        sa.Column('child_role_id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('parent_role_id', 'child_role_id'),
        sa.ForeignKeyConstraint(['parent_role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['child_role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.CheckConstraint('parent_role_id <> child_role_id', name='ck_role_hierarchy_no_self_loop'),
    )
    op.create_index('ix_role_hierarchy_child_role_id', 'role_hierarchy', ['child_role_id'])

    # Users
    op.create_table(
        'users',
        _uuid_pk(),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role_id', sa.UUID(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_users_role_id', 'users', ['role_id'])

    op.create_table(
        'user_hierarchy',
        sa.Column('parent_user_id', sa.UUID(), nullable=False),
        sa.Column('child_user_id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('parent_user_id', 'child_user_id'),
        sa.ForeignKeyConstraint(['parent_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['child_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.CheckConstraint('parent_user_id <> child_user_id', name='ck_user_hierarchy_no_self_loop'),
    )
    op.create_index('ix_user_hierarchy_child_user_id', 'user_hierarchy', ['child_user_id'])

    # Clients (PII columns hold base64 envelopes)
    op.create_table(
        'clients',
        _uuid_pk(),
        sa.Column('package', sa.Text(), nullable=False),
        sa.Column('client_name', sa.Text(), nullable=False),
        sa.Column('person_name', sa.Text(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('domains', sa.Text(), nullable=False),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('pincode', sa.String(20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'user_clients',
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('client_id', sa.UUID(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('user_id', 'client_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_user_clients_client_id', 'user_clients', ['client_id'])

    # Enquiries (PII columns hold base64 envelopes)
    op.create_table(
        'enquiries',
        _uuid_pk(),
        sa.Column('company_name', sa.Text(), nullable=False),
        sa.Column('full_name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('mobile', sa.Text(), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('enquiry_details', sa.Text(), nullable=False),
        sa.Column('domain', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_enquiries_submitted_at', 'enquiries', ['submitted_at'])

    # Blind-index tables, rows replaced per (entity, field)
    for table, entity_table in SEARCH_INDEX_TABLES:
        op.create_table(
            table,
            sa.Column('entity_id', sa.UUID(), nullable=False),
            sa.Column('field_name', sa.String(64), nullable=False),
            sa.Column('index_value', sa.String(22), nullable=False),
            sa.PrimaryKeyConstraint('entity_id', 'field_name', 'index_value'),
            sa.ForeignKeyConstraint(['entity_id'], [f'{entity_table}.id'], ondelete='CASCADE'),
        )
        op.create_index(f'ix_{table}_field_value', table, ['field_name', 'index_value'])


def downgrade() -> None:
    for table, _ in reversed(SEARCH_INDEX_TABLES):
        op.drop_index(f'ix_{table}_field_value', table_name=table)
        op.drop_table(table)

    op.drop_table('enquiries')
    op.drop_table('user_clients')
    op.drop_table('clients')
    op.drop_table('user_hierarchy')
    op.drop_table('users')
    op.drop_table('role_hierarchy')
    op.drop_table('role_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
