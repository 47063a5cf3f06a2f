"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2024-01-05

Creates all database tables for the Student Attendance Tracker:
- students: Student directory, unique register numbers
- attendance: Daily attendance ledger, one row per student per date

The (student_id, date) unique constraint is what the reconciliation
service relies on to keep concurrent submissions from duplicating a day.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Students Table ────────────────────────────────────────
    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('register_number', sa.String(32), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('year_of_study', sa.Integer(), nullable=False),
        sa.Column('branch', sa.String(16), nullable=False),
        sa.Column('dob', sa.Date(), nullable=False),
        sa.Column('gender', sa.String(16), nullable=False),
        sa.Column('community', sa.Text(), nullable=True),
        sa.Column('minority', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('blood_group', sa.String(4), nullable=True),
        sa.Column('aadhar', sa.String(16), nullable=True),
        sa.Column('mobile', sa.String(20), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(),
                  server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_students_register_number', 'students', ['register_number'], unique=True)
    op.create_index('ix_students_branch', 'students', ['branch'])

    # ── Attendance Table ──────────────────────────────────────
    op.create_table(
        'attendance',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36),
                  sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(8), nullable=False),
        sa.Column('created_at', sa.DateTime(),
                  server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(),
                  server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint('student_id', 'date', name='uq_attendance_student_date'),
    )

    # Indexes for per-day aggregates and per-student lookups
    op.create_index('ix_attendance_date', 'attendance', ['date'])
    op.create_index('ix_attendance_student_id', 'attendance', ['student_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_index('ix_attendance_student_id', table_name='attendance')
    op.drop_index('ix_attendance_date', table_name='attendance')
    op.drop_table('attendance')
    op.drop_index('ix_students_branch', table_name='students')
    op.drop_index('ix_students_register_number', table_name='students')
    op.drop_table('students')
