from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)


def _id():
    return sa.Column('id', UUID, primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade():
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        'profiles',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default=sa.text("'STUDENT'")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN', 'STUDENT')", name='ck_profiles_role'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    for table in ('students', 'teachers', 'subjects'):
        columns = [_id(), sa.Column('name', sa.String(), nullable=False)]
        if table == 'students':
            columns.append(sa.Column('email', sa.String(), nullable=True, unique=True))
        op.create_table(table, *columns, *_timestamps())
        op.create_index(f'ix_{table}_name', table, ['name'])

    op.create_table(
        'student_teacher_subjects',
        _id(),
        sa.Column('student_id', UUID, sa.ForeignKey('students.id', ondelete='CASCADE'), nullable=True),
        sa.Column('teacher_id', UUID, sa.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=True),
        sa.Column('subject_id', UUID, sa.ForeignKey('subjects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamps(),
    )
    for col in ('student_id', 'teacher_id', 'subject_id'):
        op.create_index(f'ix_student_teacher_subjects_{col}', 'student_teacher_subjects', [col])
    # one active row per (student, teacher, subject); a NULL student or teacher is part of the key
    op.execute(
        "CREATE UNIQUE INDEX uq_sts_active_triple ON student_teacher_subjects "
        "(student_id, teacher_id, subject_id) NULLS NOT DISTINCT WHERE is_active"
    )

    op.create_table(
        'questionnaire_groups',
        _id(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'questionnaires',
        _id(),
        sa.Column('group_id', UUID, sa.ForeignKey('questionnaire_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('assignment_type', sa.String(), nullable=False, server_default=sa.text("'ALL_STUDENTS'")),
        *_timestamps(),
        sa.CheckConstraint(
            "assignment_type IN ('ALL_STUDENTS', 'SPECIFIC_STUDENTS')", name='ck_questionnaires_assignment_type'
        ),
    )
    op.create_index('ix_questionnaires_group_id', 'questionnaires', ['group_id'])

    op.create_table(
        'questions',
        _id(),
        sa.Column('questionnaire_id', UUID, sa.ForeignKey('questionnaires.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN ('MULTIPLE_CHOICE', 'FREE_TEXT', 'RATING', 'YES_NO')", name='ck_questions_type'
        ),
    )
    op.create_index('ix_questions_questionnaire_id', 'questions', ['questionnaire_id'])

    op.create_table(
        'question_options',
        _id(),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
    )
    op.create_index('ix_question_options_question_id', 'question_options', ['question_id'])

    op.create_table(
        'questionnaire_assignments',
        _id(),
        sa.Column('questionnaire_id', UUID, sa.ForeignKey('questionnaires.id', ondelete='CASCADE'), nullable=False),
        sa.Column(
            'student_teacher_subject_id',
            UUID,
            sa.ForeignKey('student_teacher_subjects.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('questionnaire_id', 'student_teacher_subject_id', name='uq_questionnaire_triple'),
    )
    op.create_index('ix_questionnaire_assignments_questionnaire_id', 'questionnaire_assignments', ['questionnaire_id'])
    op.create_index(
        'ix_questionnaire_assignments_student_teacher_subject_id',
        'questionnaire_assignments',
        ['student_teacher_subject_id'],
    )

    op.create_table(
        'questionnaire_responses',
        _id(),
        sa.Column('questionnaire_id', UUID, sa.ForeignKey('questionnaires.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_email', sa.String(), nullable=False),
        sa.Column('subject_id', UUID, nullable=False),
        sa.Column('teacher_id', UUID, nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_questionnaire_responses_questionnaire_id', 'questionnaire_responses', ['questionnaire_id'])
    op.create_index('ix_questionnaire_responses_student_email', 'questionnaire_responses', ['student_email'])
    # duplicate-submission key; a NULL teacher counts as a value (PostgreSQL 15+)
    op.execute(
        "ALTER TABLE questionnaire_responses ADD CONSTRAINT uq_response_submission_key "
        "UNIQUE NULLS NOT DISTINCT (questionnaire_id, student_email, subject_id, teacher_id)"
    )

    op.create_table(
        'question_responses',
        _id(),
        sa.Column(
            'response_id', UUID, sa.ForeignKey('questionnaire_responses.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('answer_text', sa.Text(), nullable=True),
        sa.Column(
            'answer_option_id', UUID, sa.ForeignKey('question_options.id', ondelete='SET NULL'), nullable=True
        ),
        sa.Column('answer_rating', sa.Integer(), nullable=True),
        sa.Column('answer_boolean', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "answer_rating IS NULL OR (answer_rating >= 1 AND answer_rating <= 5)", name='ck_rating_range'
        ),
    )
    op.create_index('ix_question_responses_response_id', 'question_responses', ['response_id'])
    op.create_index('ix_question_responses_question_id', 'question_responses', ['question_id'])

    op.create_table(
        'import_history',
        _id(),
        sa.Column('imported_by', UUID, nullable=True),
        sa.Column('total_records', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('new_students', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('new_teachers', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('new_subjects', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('updated_records', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('error_details', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_import_history_imported_by', 'import_history', ['imported_by'])


def downgrade():
    for table in (
        'import_history',
        'question_responses',
        'questionnaire_responses',
        'questionnaire_assignments',
        'question_options',
        'questions',
        'questionnaires',
        'questionnaire_groups',
        'student_teacher_subjects',
        'subjects',
        'teachers',
        'students',
        'profiles',
    ):
        op.drop_table(table)
