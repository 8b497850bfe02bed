"""timetable options

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('timetable_option',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('course.id', ondelete='CASCADE'), nullable=False),
        sa.Column('schedule_data', sa.JSON(), nullable=False),
        sa.Column('utilization_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('option_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_timetable_option_course_id', 'timetable_option', ['course_id'])

def downgrade():
    op.drop_index('ix_timetable_option_course_id', table_name='timetable_option')
    op.drop_table('timetable_option')
