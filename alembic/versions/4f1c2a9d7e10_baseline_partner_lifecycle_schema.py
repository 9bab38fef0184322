# alembic/versions/4f1c2a9d7e10_baseline_partner_lifecycle_schema.py
"""Baseline: empresas, credenciais, solicitações, relacionamentos, contratos e documentos

Revision ID: 4f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.TIMESTAMP(timezone=True)

def _partial_unique(name: str, table: str, columns: list, where: str):
    # Índice único parcial (PostgreSQL e SQLite aceitam WHERE)
    op.create_index(name, table, columns, unique=True,
                    postgresql_where=sa.text(where), sqlite_where=sa.text(where))

def upgrade() -> None:
    op.create_table(
        'companies',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('cnpj', sa.String(14), nullable=False),
        sa.Column('legal_name', sa.Text(), nullable=False),
        sa.Column('trade_name', sa.Text(), nullable=True),
        sa.Column('city', sa.Text(), nullable=True),
        sa.Column('state', sa.String(2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_companies'),
    )
    op.create_index('ix_companies_type', 'companies', ['type'])
    op.create_index('ix_companies_cnpj', 'companies', ['cnpj'], unique=True)
    op.create_index('ix_companies_is_active', 'companies', ['is_active'])

    # --- Credenciamento ---
    op.create_table(
        'supplier_credentials',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('brand_id', sa.String(36), nullable=False),
        sa.Column('tax_id', sa.String(14), nullable=False),
        sa.Column('legal_name', sa.Text(), nullable=True),
        sa.Column('trade_name', sa.Text(), nullable=True),
        sa.Column('contact_name', sa.Text(), nullable=False),
        sa.Column('contact_email', sa.Text(), nullable=False),
        sa.Column('contact_phone', sa.String(11), nullable=False),
        sa.Column('contact_whatsapp', sa.String(11), nullable=True),
        sa.Column('internal_code', sa.String(50), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('completed_at', TS, nullable=True),
        sa.Column('created_by_id', sa.String(36), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_supplier_credentials_brand_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_supplier_credentials'),
    )
    op.create_index('ix_supplier_credentials_brand_id', 'supplier_credentials', ['brand_id'])
    op.create_index('ix_supplier_credentials_tax_id', 'supplier_credentials', ['tax_id'])
    op.create_index('ix_supplier_credentials_category', 'supplier_credentials', ['category'])
    op.create_index('ix_supplier_credentials_status', 'supplier_credentials', ['status'])
    op.create_index('ix_supplier_credentials_created_at', 'supplier_credentials', ['created_at'])
    _partial_unique('uq_supplier_credentials_brand_tax_id_open', 'supplier_credentials',
                    ['brand_id', 'tax_id'], "status <> 'BLOCKED'")

    op.create_table(
        'credential_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('credential_id', sa.String(36), nullable=False),
        sa.Column('from_status', sa.String(32), nullable=True),
        sa.Column('to_status', sa.String(32), nullable=False),
        sa.Column('performed_by_id', sa.String(36), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['credential_id'], ['supplier_credentials.id'], ondelete='CASCADE',
                                name='fk_credential_status_history_credential_id_supplier_credentials'),
        sa.PrimaryKeyConstraint('id', name='pk_credential_status_history'),
    )
    op.create_index('ix_credential_status_history_credential_id', 'credential_status_history', ['credential_id'])

    op.create_table(
        'credential_validations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('credential_id', sa.String(36), nullable=False),
        sa.Column('tax_id', sa.String(14), nullable=False),
        sa.Column('source', sa.String(50), nullable=False),
        sa.Column('is_valid', sa.Boolean(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('checked_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['credential_id'], ['supplier_credentials.id'], ondelete='CASCADE',
                                name='fk_credential_validations_credential_id_supplier_credentials'),
        sa.PrimaryKeyConstraint('id', name='pk_credential_validations'),
    )
    op.create_index('ix_credential_validations_credential_id', 'credential_validations', ['credential_id'])

    # --- Relacionamentos ---
    op.create_table(
        'supplier_brand_relationships',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('brand_id', sa.String(36), nullable=False),
        sa.Column('supplier_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('initiated_by_id', sa.String(36), nullable=False),
        sa.Column('initiated_by_role', sa.String(16), nullable=False),
        sa.Column('internal_code', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('document_sharing_consent', sa.Boolean(), nullable=False),
        sa.Column('document_sharing_consent_at', TS, nullable=True),
        sa.Column('document_sharing_revoked_at', TS, nullable=True),
        sa.Column('document_sharing_revoked_reason', sa.Text(), nullable=True),
        sa.Column('activated_at', TS, nullable=True),
        sa.Column('suspended_at', TS, nullable=True),
        sa.Column('suspension_reason', sa.Text(), nullable=True),
        sa.Column('terminated_at', TS, nullable=True),
        sa.Column('termination_reason', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_supplier_brand_relationships_brand_id_companies'),
        sa.ForeignKeyConstraint(['supplier_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_supplier_brand_relationships_supplier_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_supplier_brand_relationships'),
    )
    op.create_index('ix_supplier_brand_relationships_brand_id', 'supplier_brand_relationships', ['brand_id'])
    op.create_index('ix_supplier_brand_relationships_supplier_id', 'supplier_brand_relationships', ['supplier_id'])
    op.create_index('ix_supplier_brand_relationships_status', 'supplier_brand_relationships', ['status'])
    _partial_unique('uq_supplier_brand_relationships_pair_open', 'supplier_brand_relationships',
                    ['brand_id', 'supplier_id'], "status <> 'TERMINATED'")

    op.create_table(
        'relationship_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('relationship_id', sa.String(36), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('performed_by_id', sa.String(36), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['relationship_id'], ['supplier_brand_relationships.id'], ondelete='CASCADE',
                                name='fk_relationship_status_history_relationship_id_supplier_brand_relationships'),
        sa.PrimaryKeyConstraint('id', name='pk_relationship_status_history'),
    )
    op.create_index('ix_relationship_status_history_relationship_id', 'relationship_status_history', ['relationship_id'])

    # --- Solicitações de parceria ---
    op.create_table(
        'partnership_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('brand_id', sa.String(36), nullable=False),
        sa.Column('supplier_id', sa.String(36), nullable=False),
        sa.Column('requested_by_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('responded_by_id', sa.String(36), nullable=True),
        sa.Column('responded_at', TS, nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('document_sharing_consent', sa.Boolean(), nullable=False),
        sa.Column('expires_at', TS, nullable=False),
        sa.Column('relationship_id', sa.String(36), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['brand_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_partnership_requests_brand_id_companies'),
        sa.ForeignKeyConstraint(['supplier_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_partnership_requests_supplier_id_companies'),
        sa.ForeignKeyConstraint(['relationship_id'], ['supplier_brand_relationships.id'], ondelete='SET NULL',
                                name='fk_partnership_requests_relationship_id_supplier_brand_relationships'),
        sa.PrimaryKeyConstraint('id', name='pk_partnership_requests'),
    )
    op.create_index('ix_partnership_requests_brand_id', 'partnership_requests', ['brand_id'])
    op.create_index('ix_partnership_requests_supplier_id', 'partnership_requests', ['supplier_id'])
    op.create_index('ix_partnership_requests_status', 'partnership_requests', ['status'])
    op.create_index('ix_partnership_requests_expires_at', 'partnership_requests', ['expires_at'])
    _partial_unique('uq_partnership_requests_pair_pending', 'partnership_requests',
                    ['brand_id', 'supplier_id'], "status = 'PENDING'")

    # --- Contratos ---
    op.create_table(
        'relationship_contracts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('display_id', sa.String(20), nullable=False),
        sa.Column('relationship_id', sa.String(36), nullable=False),
        sa.Column('brand_id', sa.String(36), nullable=False),
        sa.Column('supplier_id', sa.String(36), nullable=False),
        sa.Column('parent_contract_id', sa.String(36), nullable=True),
        sa.Column('type', sa.String(24), nullable=False),
        sa.Column('status', sa.String(24), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('value', sa.Numeric(15, 2), nullable=True),
        sa.Column('terms', sa.JSON(), nullable=True),
        sa.Column('valid_from', sa.Date(), nullable=False),
        sa.Column('valid_until', sa.Date(), nullable=False),
        sa.Column('sent_at', TS, nullable=True),
        sa.Column('brand_signed_at', TS, nullable=True),
        sa.Column('brand_signed_by_id', sa.String(36), nullable=True),
        sa.Column('brand_signer_name', sa.Text(), nullable=True),
        sa.Column('supplier_signed_at', TS, nullable=True),
        sa.Column('supplier_signed_by_id', sa.String(36), nullable=True),
        sa.Column('supplier_signer_name', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.String(36), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['relationship_id'], ['supplier_brand_relationships.id'], ondelete='CASCADE',
                                name='fk_relationship_contracts_relationship_id_supplier_brand_relationships'),
        sa.ForeignKeyConstraint(['parent_contract_id'], ['relationship_contracts.id'], ondelete='SET NULL',
                                name='fk_relationship_contracts_parent_contract_id_relationship_contracts'),
        sa.PrimaryKeyConstraint('id', name='pk_relationship_contracts'),
        sa.UniqueConstraint('display_id', name='uq_relationship_contracts_display_id'),
    )
    op.create_index('ix_relationship_contracts_relationship_id', 'relationship_contracts', ['relationship_id'])
    op.create_index('ix_relationship_contracts_brand_id', 'relationship_contracts', ['brand_id'])
    op.create_index('ix_relationship_contracts_supplier_id', 'relationship_contracts', ['supplier_id'])
    op.create_index('ix_relationship_contracts_status', 'relationship_contracts', ['status'])

    op.create_table(
        'contract_revisions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('contract_id', sa.String(36), nullable=False),
        sa.Column('requested_by_id', sa.String(36), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('response_notes', sa.Text(), nullable=True),
        sa.Column('responded_by_id', sa.String(36), nullable=True),
        sa.Column('responded_at', TS, nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['contract_id'], ['relationship_contracts.id'], ondelete='CASCADE',
                                name='fk_contract_revisions_contract_id_relationship_contracts'),
        sa.PrimaryKeyConstraint('id', name='pk_contract_revisions'),
    )
    op.create_index('ix_contract_revisions_contract_id', 'contract_revisions', ['contract_id'])

    # --- Documentos de conformidade (status derivado, não armazenado) ---
    op.create_table(
        'supplier_documents',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('company_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('competence_month', sa.Integer(), nullable=True),
        sa.Column('competence_year', sa.Integer(), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_name', sa.Text(), nullable=True),
        sa.Column('expires_at', TS, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('uploaded_by_id', sa.String(36), nullable=True),
        sa.Column('last_expiry_alert_days', sa.Integer(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE',
                                name='fk_supplier_documents_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_supplier_documents'),
    )
    _partial_unique('uq_supplier_documents_company_type', 'supplier_documents',
                    ['company_id', 'type'], "competence_month IS NULL AND competence_year IS NULL")
    _partial_unique('uq_supplier_documents_company_type_competence', 'supplier_documents',
                    ['company_id', 'type', 'competence_month', 'competence_year'],
                    "competence_month IS NOT NULL AND competence_year IS NOT NULL")
    op.create_index('ix_supplier_documents_company_id', 'supplier_documents', ['company_id'])
    op.create_index('ix_supplier_documents_type', 'supplier_documents', ['type'])
    op.create_index('ix_supplier_documents_expires_at', 'supplier_documents', ['expires_at'])


def downgrade() -> None:
    op.drop_table('supplier_documents')
    op.drop_table('contract_revisions')
    op.drop_table('relationship_contracts')
    op.drop_table('partnership_requests')
    op.drop_table('relationship_status_history')
    op.drop_table('supplier_brand_relationships')
    op.drop_table('credential_validations')
    op.drop_table('credential_status_history')
    op.drop_table('supplier_credentials')
    op.drop_table('companies')
