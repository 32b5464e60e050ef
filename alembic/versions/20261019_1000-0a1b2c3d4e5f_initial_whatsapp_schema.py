"""initial whatsapp schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table('accounts',
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('assistant_configs',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('agent_name', sa.String(length=100), nullable=False),
        sa.Column('behavior_prompt', sa.Text(), nullable=True),
        sa.Column('communication_style', sa.String(length=20), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('company_description', sa.Text(), nullable=True),
        sa.Column('website_url', sa.String(length=500), nullable=True),
        sa.Column('use_emojis', sa.Boolean(), nullable=False),
        sa.Column('restrict_topics', sa.Boolean(), nullable=False),
        sa.Column('sign_agent_name', sa.Boolean(), nullable=False),
        sa.Column('split_long_messages', sa.Boolean(), nullable=False),
        sa.Column('disable_group_messages', sa.Boolean(), nullable=False),
        sa.Column('auto_create_contacts', sa.Boolean(), nullable=False),
        sa.Column('show_typing_indicator', sa.Boolean(), nullable=False),
        sa.Column('show_recording_indicator', sa.Boolean(), nullable=False),
        sa.Column('response_delay_seconds', sa.Integer(), nullable=False),
        sa.Column('voice_response_enabled', sa.Boolean(), nullable=False),
        sa.Column('elevenlabs_enabled', sa.Boolean(), nullable=False),
        sa.Column('elevenlabs_voice_id', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_assistant_configs_account_id', 'assistant_configs', ['account_id'], unique=False)

    op.create_table('training_documents',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_training_documents_account_id', 'training_documents', ['account_id'], unique=False)

    op.create_table('assistant_intents',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('intent_name', sa.String(length=100), nullable=False),
        sa.Column('trigger_phrases', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('action_type', sa.String(length=20), nullable=False),
        sa.Column('action_value', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_assistant_intents_account_id', 'assistant_intents', ['account_id'], unique=False)

    op.create_table('whatsapp_conversations',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('contact_key', sa.String(length=100), nullable=False),
        sa.Column('contact_phone', sa.String(length=100), nullable=False),
        sa.Column('contact_lid', sa.String(length=100), nullable=True),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('profile_picture_url', sa.String(length=1000), nullable=True),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unread_count', sa.Integer(), nullable=False),
        sa.Column('ai_disabled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'contact_key', name='uq_conversation_account_contact_key')
    )
    op.create_index('ix_whatsapp_conversations_account_id', 'whatsapp_conversations', ['account_id'], unique=False)
    # Lookups by phone and by opaque id are not unique: a contact can own several rows
    op.create_index('ix_conversation_account_phone', 'whatsapp_conversations', ['account_id', 'contact_phone'], unique=False)
    op.create_index('ix_conversation_account_lid', 'whatsapp_conversations', ['account_id', 'contact_lid'], unique=False)

    op.create_table('whatsapp_messages',
        sa.Column('conversation_id', sa.UUID(), nullable=False),
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('is_from_contact', sa.Boolean(), nullable=False),
        sa.Column('is_ai_response', sa.Boolean(), nullable=False),
        sa.Column('message_type', sa.String(length=20), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('audio_url', sa.String(length=1000), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False),
        sa.Column('zapi_message_id', sa.String(length=100), nullable=True),
        sa.Column('sent_by_name', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['conversation_id'], ['whatsapp_conversations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('zapi_message_id')
    )
    # Composite index for loading recent history
    op.create_index('ix_message_conversation_created', 'whatsapp_messages', ['conversation_id', 'created_at'], unique=False)

    op.create_table('whatsapp_contacts',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('phone', sa.String(length=100), nullable=False),
        sa.Column('lid', sa.String(length=100), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('bot_disabled', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'phone', name='uq_contact_account_phone')
    )
    op.create_index('ix_whatsapp_contacts_account_id', 'whatsapp_contacts', ['account_id'], unique=False)
    op.create_index('ix_whatsapp_contacts_lid', 'whatsapp_contacts', ['lid'], unique=False)

    op.create_table('notifications',
        sa.Column('account_id', sa.UUID(), nullable=False),
        sa.Column('conversation_id', sa.UUID(), nullable=True),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['conversation_id'], ['whatsapp_conversations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_account_id', 'notifications', ['account_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_notifications_account_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_whatsapp_contacts_lid', table_name='whatsapp_contacts')
    op.drop_index('ix_whatsapp_contacts_account_id', table_name='whatsapp_contacts')
    op.drop_table('whatsapp_contacts')
    op.drop_index('ix_message_conversation_created', table_name='whatsapp_messages')
    op.drop_table('whatsapp_messages')
    op.drop_index('ix_conversation_account_lid', table_name='whatsapp_conversations')
    op.drop_index('ix_conversation_account_phone', table_name='whatsapp_conversations')
    op.drop_index('ix_whatsapp_conversations_account_id', table_name='whatsapp_conversations')
    op.drop_table('whatsapp_conversations')
    op.drop_index('ix_assistant_intents_account_id', table_name='assistant_intents')
    op.drop_table('assistant_intents')
    op.drop_index('ix_training_documents_account_id', table_name='training_documents')
    op.drop_table('training_documents')
    op.drop_index('ix_assistant_configs_account_id', table_name='assistant_configs')
    op.drop_table('assistant_configs')
    op.drop_table('accounts')
