"""create_chatbot_tables

Revision ID: 3b7c1e9a2d40
Revises:
Create Date: 2026-10-19 10:12:44.518302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7c1e9a2d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Leads and WhatsApp chats
    op.create_table(
        'leads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('whatsapp_number', sa.String(32), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('consultant_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('priority', sa.String(50), nullable=False),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leads_id'), 'leads', ['id'], unique=False)
    op.create_index(op.f('ix_leads_phone'), 'leads', ['phone'], unique=False)
    op.create_index(op.f('ix_leads_whatsapp_number'), 'leads', ['whatsapp_number'], unique=False)

    op.create_table(
        'whatsapp_chats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lead_id', sa.Integer(), nullable=True),
        sa.Column('phone_number', sa.String(32), nullable=False),
        sa.Column('consultant_id', sa.Integer(), nullable=True),
        sa.Column('last_message_time', sa.DateTime(), nullable=True),
        sa.Column('unread_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_whatsapp_chats_id'), 'whatsapp_chats', ['id'], unique=False)
    op.create_index(op.f('ix_whatsapp_chats_phone_number'), 'whatsapp_chats', ['phone_number'], unique=True)

    op.create_table(
        'whatsapp_messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('direction', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('message_id', sa.String(300), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['chat_id'], ['whatsapp_chats.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_whatsapp_messages_id'), 'whatsapp_messages', ['id'], unique=False)
    op.create_index(op.f('ix_whatsapp_messages_chat_id'), 'whatsapp_messages', ['chat_id'], unique=False)

    op.create_table(
        'whatsapp_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('api_key', sa.String(500), nullable=True),
        sa.Column('phone_number_id', sa.String(100), nullable=True),
        sa.Column('business_account_id', sa.String(100), nullable=True),
        sa.Column('webhook_verify_token', sa.String(255), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # Chatbot flow graph
    op.create_table(
        'chatbot_flows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_keywords', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chatbot_flows_id'), 'chatbot_flows', ['id'], unique=False)

    op.create_table(
        'chatbot_nodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('flow_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('variables', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['flow_id'], ['chatbot_flows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chatbot_nodes_id'), 'chatbot_nodes', ['id'], unique=False)
    op.create_index(op.f('ix_chatbot_nodes_flow_id'), 'chatbot_nodes', ['flow_id'], unique=False)

    op.create_table(
        'chatbot_conditions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('node_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('next_node_id', sa.Integer(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['node_id'], ['chatbot_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chatbot_conditions_id'), 'chatbot_conditions', ['id'], unique=False)
    op.create_index(op.f('ix_chatbot_conditions_node_id'), 'chatbot_conditions', ['node_id'], unique=False)

    op.create_table(
        'chatbot_actions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('node_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('parameters', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['node_id'], ['chatbot_nodes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chatbot_actions_id'), 'chatbot_actions', ['id'], unique=False)
    op.create_index(op.f('ix_chatbot_actions_node_id'), 'chatbot_actions', ['node_id'], unique=False)

    op.create_table(
        'chatbot_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=False),
        sa.Column('flow_id', sa.Integer(), nullable=False),
        sa.Column('start_node_id', sa.Integer(), nullable=True),
        sa.Column('current_node_id', sa.Integer(), nullable=True),
        sa.Column('variables', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['chat_id'], ['whatsapp_chats.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['flow_id'], ['chatbot_flows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_chatbot_sessions_id'), 'chatbot_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_chatbot_sessions_chat_id'), 'chatbot_sessions', ['chat_id'], unique=False)
    # At most one active session per chat
    op.create_index(
        'uq_chatbot_sessions_active_chat',
        'chatbot_sessions',
        ['chat_id'],
        unique=True,
        sqlite_where=sa.text('is_active'),
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'canned_responses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shortcut', sa.String(100), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_global', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_canned_responses_id'), 'canned_responses', ['id'], unique=False)
    op.create_index(op.f('ix_canned_responses_shortcut'), 'canned_responses', ['shortcut'], unique=False)

    # Trainer schedules
    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=False),
        sa.Column('student_ids', sa.JSON(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_schedules_id'), 'schedules', ['id'], unique=False)
    op.create_index(op.f('ix_schedules_trainer_id'), 'schedules', ['trainer_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_schedules_trainer_id'), table_name='schedules')
    op.drop_index(op.f('ix_schedules_id'), table_name='schedules')
    op.drop_table('schedules')

    op.drop_index(op.f('ix_canned_responses_shortcut'), table_name='canned_responses')
    op.drop_index(op.f('ix_canned_responses_id'), table_name='canned_responses')
    op.drop_table('canned_responses')

    op.drop_index('uq_chatbot_sessions_active_chat', table_name='chatbot_sessions')
    op.drop_index(op.f('ix_chatbot_sessions_chat_id'), table_name='chatbot_sessions')
    op.drop_index(op.f('ix_chatbot_sessions_id'), table_name='chatbot_sessions')
    op.drop_table('chatbot_sessions')

    op.drop_index(op.f('ix_chatbot_actions_node_id'), table_name='chatbot_actions')
    op.drop_index(op.f('ix_chatbot_actions_id'), table_name='chatbot_actions')
    op.drop_table('chatbot_actions')

    op.drop_index(op.f('ix_chatbot_conditions_node_id'), table_name='chatbot_conditions')
    op.drop_index(op.f('ix_chatbot_conditions_id'), table_name='chatbot_conditions')
    op.drop_table('chatbot_conditions')

    op.drop_index(op.f('ix_chatbot_nodes_flow_id'), table_name='chatbot_nodes')
    op.drop_index(op.f('ix_chatbot_nodes_id'), table_name='chatbot_nodes')
    op.drop_table('chatbot_nodes')

    op.drop_index(op.f('ix_chatbot_flows_id'), table_name='chatbot_flows')
    op.drop_table('chatbot_flows')

    op.drop_table('whatsapp_settings')

    op.drop_index(op.f('ix_whatsapp_messages_chat_id'), table_name='whatsapp_messages')
    op.drop_index(op.f('ix_whatsapp_messages_id'), table_name='whatsapp_messages')
    op.drop_table('whatsapp_messages')

    op.drop_index(op.f('ix_whatsapp_chats_phone_number'), table_name='whatsapp_chats')
    op.drop_index(op.f('ix_whatsapp_chats_id'), table_name='whatsapp_chats')
    op.drop_table('whatsapp_chats')

    op.drop_index(op.f('ix_leads_whatsapp_number'), table_name='leads')
    op.drop_index(op.f('ix_leads_phone'), table_name='leads')
    op.drop_index(op.f('ix_leads_id'), table_name='leads')
    op.drop_table('leads')
