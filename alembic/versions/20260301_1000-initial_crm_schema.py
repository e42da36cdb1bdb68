"""Initial CRM schema

Revision ID: initial_crm_schema
Revises:
Create Date: 2026-03-01 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'initial_crm_schema'
down_revision = None
branch_labels = None
depends_on = None


app_role = sa.Enum('ADMIN', 'USER', name='approle')
discount_type = sa.Enum('PERCENTAGE', 'FIXED', name='discounttype')
voucher_status = sa.Enum('ISSUED', 'REDEEMED', 'EXPIRED', name='voucherstatus')


def upgrade() -> None:
    # Companies (tenant root)
    op.create_table(
        'companies',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('industry', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_companies_name_lower', 'companies', [sa.text('lower(name)')], unique=True)

    # Profiles and roles
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profiles_company_id', 'profiles', ['company_id'])
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('role', app_role, nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role')
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    # Contacts
    op.create_table(
        'contacts',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('created_by', sa.String(), nullable=False),
        sa.Column('assigned_user_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['assigned_user_id'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_contacts_company_id', 'contacts', ['company_id'])
    op.create_index('ix_contacts_created_by', 'contacts', ['created_by'])
    op.create_index('ix_contacts_assigned_user_id', 'contacts', ['assigned_user_id'])
    op.create_index('ix_contacts_name', 'contacts', ['name'])
    op.create_index('ix_contacts_created_at', 'contacts', ['created_at'])

    # Purchases
    op.create_table(
        'purchases',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('contact_id', sa.String(), nullable=False),
        sa.Column('created_by', sa.String(), nullable=False),
        sa.Column('item', sa.String(), nullable=False),
        sa.Column('unit_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('purchase_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_purchases_company_id', 'purchases', ['company_id'])
    op.create_index('ix_purchases_contact_id', 'purchases', ['contact_id'])
    op.create_index('ix_purchases_purchase_date', 'purchases', ['purchase_date'])

    # Voucher rules
    op.create_table(
        'voucher_rules',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', discount_type, nullable=False),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('min_purchase_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('max_discount_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('valid_from', sa.DateTime(), nullable=True),
        sa.Column('valid_until', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_voucher_rules_company_id', 'voucher_rules', ['company_id'])

    # Vouchers
    op.create_table(
        'vouchers',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('contact_id', sa.String(), nullable=False),
        sa.Column('voucher_rule_id', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('status', voucher_status, nullable=False),
        sa.Column('issued_by', sa.String(), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['voucher_rule_id'], ['voucher_rules.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['issued_by'], ['profiles.id']),
        sa.ForeignKeyConstraint(['redeemed_by'], ['profiles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_vouchers_company_id', 'vouchers', ['company_id'])
    op.create_index('ix_vouchers_contact_id', 'vouchers', ['contact_id'])
    op.create_index('ix_vouchers_voucher_rule_id', 'vouchers', ['voucher_rule_id'])
    op.create_index('ix_vouchers_code', 'vouchers', ['code'], unique=True)
    op.create_index('ix_vouchers_status', 'vouchers', ['status'])


def downgrade() -> None:
    op.drop_table('vouchers')
    op.drop_table('voucher_rules')
    op.drop_table('purchases')
    op.drop_table('contacts')
    op.drop_table('user_roles')
    op.drop_table('profiles')
    op.drop_index('ix_companies_name_lower', table_name='companies')
    op.drop_table('companies')

    voucher_status.drop(op.get_bind(), checkfirst=True)
    discount_type.drop(op.get_bind(), checkfirst=True)
    app_role.drop(op.get_bind(), checkfirst=True)
