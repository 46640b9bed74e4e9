"""001 – Document store: one JSON table for every portal collection.

Employees, applications, holidays and the rest are stored as JSONB bodies
keyed by (collection, doc_id). Leave balances live inside the employee body
under ``leaveBalances``.

Revision ID: 001_document_store
Revises:
Create Date: 2026-10-17 09:30:00.000000+05:30
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

# Revision identifiers
revision = "001_document_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    op.create_table(
        "documents",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("uuid_generate_v4()"),
        ),
        sa.Column("collection", sa.String(100), nullable=False),
        sa.Column("doc_id", sa.String(255), nullable=False),
        sa.Column("body", JSONB, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
        ),
        sa.UniqueConstraint(
            "collection", "doc_id", name="uq_documents_collection_doc_id"
        ),
    )
    op.create_index("ix_documents_collection", "documents", ["collection"])

    # Leave applications are looked up by employee and status
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_documents_applications_employee
            ON documents ((body->>'employeeId'), (body->>'status'))
            WHERE collection = 'applications'
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_documents_applications_employee")
    op.drop_index("ix_documents_collection", table_name="documents")
    op.drop_table("documents")
