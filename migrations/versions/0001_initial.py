"""initial tables

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

DAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

def upgrade():
    # stored as VARCHAR + CHECK on every dialect
    day_of_week = sa.Enum(*DAYS, name='day_of_week', native_enum=False, length=9, create_constraint=True)

    op.create_table('teacher',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
    )

    op.create_table('course',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teacher.id', ondelete='SET NULL'), nullable=True),
        sa.Column('max_enrollment', sa.Integer(), nullable=True),
        sa.Column('schedule', sa.JSON(), nullable=True),
    )
    op.create_index('ix_course_teacher_id', 'course', ['teacher_id'])

    op.create_table('room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('name', name='uq_room_name'),
    )
    op.create_index('ix_room_is_active', 'room', ['is_active'])

    op.create_table('room_schedule',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('course.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('day_of_week', day_of_week, nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint('end_time > start_time', name='ck_room_schedule_interval'),
    )
    op.create_index('ix_room_schedule_course_id', 'room_schedule', ['course_id'])
    op.create_index('ix_room_schedule_room_day', 'room_schedule', ['room_id', 'day_of_week'])

def downgrade():
    op.drop_index('ix_room_schedule_room_day', table_name='room_schedule')
    op.drop_index('ix_room_schedule_course_id', table_name='room_schedule')
    op.drop_table('room_schedule')
    op.drop_index('ix_room_is_active', table_name='room')
    op.drop_table('room')
    op.drop_index('ix_course_teacher_id', table_name='course')
    op.drop_table('course')
    op.drop_table('teacher')
