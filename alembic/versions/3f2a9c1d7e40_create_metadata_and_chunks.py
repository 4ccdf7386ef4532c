"""create_metadata_and_chunks

Revision ID: 3f2a9c1d7e40
Revises:
Create Date: 2026-10-18 09:12:05.114093

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7e40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

file_status = sa.Enum('UPLOADING', 'UPLOADED', 'FAILED', name='file_status')
chunk_status = sa.Enum('PENDING', 'COMPLETED', 'FAILED', name='chunk_status')


def upgrade() -> None:
    op.create_table(
        'metadata',
        sa.Column('file_id', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=True),
        sa.Column('s3_key', sa.String(), nullable=False),
        sa.Column('status', file_status, nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('file_id'),
        sa.UniqueConstraint('s3_key'),
    )
    op.create_index(op.f('ix_metadata_user_id'), 'metadata', ['user_id'], unique=False)

    op.create_table(
        'chunks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('file_id', sa.String(), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('s3_key', sa.String(), nullable=False),
        sa.Column('checksum', sa.String(), nullable=True),
        sa.Column('status', chunk_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['file_id'], ['metadata.file_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('file_id', 'chunk_index', name='chunks_file_id_index_key'),
    )
    op.create_index(op.f('ix_chunks_file_id'), 'chunks', ['file_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_chunks_file_id'), table_name='chunks')
    op.drop_table('chunks')
    op.drop_index(op.f('ix_metadata_user_id'), table_name='metadata')
    op.drop_table('metadata')
    chunk_status.drop(op.get_bind(), checkfirst=True)
    file_status.drop(op.get_bind(), checkfirst=True)
