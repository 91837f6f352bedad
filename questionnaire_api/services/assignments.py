# questionnaire_api/services/assignments.py
"""
Which triples a questionnaire is open to, and which questionnaires a student
may answer (with the triple they answer it for).

ALL_STUDENTS questionnaires are evaluated against the *current* set of active
triples every time; SPECIFIC_STUDENTS questionnaires use their stored
assignment rows. Large sets are read in bounded batches, one after another.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import NotFound
from questionnaire_api.core.logging import get_logger
from questionnaire_api.models.enums import AssignmentType
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.questionnaire import Question, Questionnaire, QuestionnaireAssignment
from questionnaire_api.models.response import QuestionnaireResponse
from questionnaire_api.models.school import Student, StudentTeacherSubject, Subject, Teacher
from questionnaire_api.schemas.common import RefOut
from questionnaire_api.schemas.questionnaire import (
    QuestionnaireAssignmentDataOut,
    QuestionOut,
    StudentQuestionnaireOut,
    StudentRefOut,
    TripleOut,
)

log = get_logger("assignments")

ID_BATCH_SIZE = 10000
DETAIL_BATCH_SIZE = 500
ACTIVE_BATCH_SIZE = 1000

# stands in for a missing teacher inside submission keys
NULL_TEACHER = "null"


def submission_key(questionnaire_id, subject_id, teacher_id) -> str:
    return f"{questionnaire_id}-{subject_id}-{teacher_id if teacher_id is not None else NULL_TEACHER}"


def chunks(seq: Sequence, size: int) -> Iterator[Sequence]:
    for i in range(0, len(seq), size):
        yield seq[i:i + size]


def triple_out(sts: StudentTeacherSubject) -> TripleOut:
    return TripleOut(
        id=sts.id,
        student=StudentRefOut.model_validate(sts.student),
        teacher=RefOut.model_validate(sts.teacher) if sts.teacher is not None else None,
        subject=RefOut.model_validate(sts.subject),
    )


def _with_rows(query):
    return query.options(
        selectinload(StudentTeacherSubject.student),
        selectinload(StudentTeacherSubject.teacher),
        selectinload(StudentTeacherSubject.subject),
    )


class AssignmentResolver:
    def __init__(self, db: Session):
        self.db = db

    # -------- triples --------
    def _active_query(self, subject_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None):
        q = self.db.query(StudentTeacherSubject).filter(StudentTeacherSubject.is_active.is_(True))
        if subject_id:
            q = q.filter(StudentTeacherSubject.subject_id == subject_id)
        if teacher_id:
            q = q.filter(StudentTeacherSubject.teacher_id == teacher_id)
        return q

    def active_triple_count(self, subject_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None) -> int:
        return self._active_query(subject_id, teacher_id).count()

    def iter_active_triples(
        self,
        subject_id: Optional[UUID] = None,
        teacher_id: Optional[UUID] = None,
        batch_size: int = ACTIVE_BATCH_SIZE,
    ) -> Iterator[StudentTeacherSubject]:
        """Active triples in id order, fetched `batch_size` rows at a time until exhausted."""
        offset = 0
        while True:
            batch = (
                _with_rows(self._active_query(subject_id, teacher_id))
                .order_by(StudentTeacherSubject.id)
                .offset(offset)
                .limit(batch_size)
                .all()
            )
            yield from batch
            if len(batch) < batch_size:
                break
            offset += batch_size
            log.debug("Loaded %d active triples so far", offset)

    def assigned_triple_ids(self, questionnaire_id: UUID) -> List[UUID]:
        ids: List[UUID] = []
        offset = 0
        while True:
            rows = (
                self.db.query(QuestionnaireAssignment.student_teacher_subject_id)
                .filter(QuestionnaireAssignment.questionnaire_id == questionnaire_id)
                .order_by(QuestionnaireAssignment.id)
                .offset(offset)
                .limit(ID_BATCH_SIZE)
                .all()
            )
            ids.extend(r[0] for r in rows)
            if len(rows) < ID_BATCH_SIZE:
                break
            offset += ID_BATCH_SIZE
        return ids

    def triples_by_ids(self, ids: Sequence[UUID]) -> List[StudentTeacherSubject]:
        """Detail rows for `ids` in batches of DETAIL_BATCH_SIZE, returned in the order of `ids`."""
        found: Dict[UUID, StudentTeacherSubject] = {}
        for n, batch in enumerate(chunks(list(ids), DETAIL_BATCH_SIZE), start=1):
            rows = _with_rows(self.db.query(StudentTeacherSubject)).filter(StudentTeacherSubject.id.in_(batch)).all()
            found.update((r.id, r) for r in rows)
            log.debug("Triple detail batch %d: %d/%d rows", n, len(rows), len(batch))
        return [found[i] for i in ids if i in found]

    def eligible_triples_for(self, questionnaire: Questionnaire) -> List[StudentTeacherSubject]:
        if questionnaire.assignment_type == AssignmentType.SPECIFIC_STUDENTS:
            ids = self.assigned_triple_ids(questionnaire.id)
            log.info("Questionnaire %s has %d assignments", questionnaire.id, len(ids))
            return self.triples_by_ids(ids)
        return list(self.iter_active_triples())

    def count_assigned(self, questionnaire: Questionnaire) -> int:
        """
        ALL_STUDENTS: every active triple in the system right now.
        SPECIFIC_STUDENTS: the stored assignment rows.
        """
        if questionnaire.assignment_type == AssignmentType.SPECIFIC_STUDENTS:
            return (
                self.db.query(QuestionnaireAssignment)
                .filter(QuestionnaireAssignment.questionnaire_id == questionnaire.id)
                .count()
            )
        return self.active_triple_count()

    def has_specific_assignment(
        self, questionnaire_id: UUID, student_id: UUID, subject_id: UUID, teacher_id: Optional[UUID]
    ) -> bool:
        q = (
            self.db.query(QuestionnaireAssignment.id)
            .join(StudentTeacherSubject, StudentTeacherSubject.id == QuestionnaireAssignment.student_teacher_subject_id)
            .filter(
                QuestionnaireAssignment.questionnaire_id == questionnaire_id,
                StudentTeacherSubject.student_id == student_id,
                StudentTeacherSubject.subject_id == subject_id,
            )
        )
        if teacher_id is None:
            q = q.filter(StudentTeacherSubject.teacher_id.is_(None))
        else:
            q = q.filter(StudentTeacherSubject.teacher_id == teacher_id)
        return q.first() is not None

    # -------- students --------
    def student_for_user(self, user_id: UUID) -> Tuple[Profile, Student]:
        profile = self.db.get(Profile, user_id)
        if profile is None:
            raise NotFound("User profile not found")
        student = self.db.query(Student).filter(Student.email == profile.email).first()
        if student is None:
            raise NotFound("Student not found")
        return profile, student

    def submitted_keys(self, email: str) -> Set[str]:
        rows = (
            self.db.query(
                QuestionnaireResponse.questionnaire_id,
                QuestionnaireResponse.subject_id,
                QuestionnaireResponse.teacher_id,
            )
            .filter(QuestionnaireResponse.student_email == email)
            .all()
        )
        return {submission_key(q, s, t) for q, s, t in rows}

    def eligible_questionnaires_for(self, student: Student, email: Optional[str] = None) -> List[StudentQuestionnaireOut]:
        """
        One entry per (active questionnaire, triple) the student may answer,
        marked with whether that pair was already submitted.
        """
        email = email or student.email
        questionnaires = (
            self.db.query(Questionnaire)
            .populate_existing()
            .options(selectinload(Questionnaire.questions).selectinload(Question.options))
            .filter(Questionnaire.is_active.is_(True))
            .order_by(Questionnaire.created_at.desc())
            .all()
        )
        if not questionnaires:
            return []

        submitted = self.submitted_keys(email) if email else set()

        own_triples = (
            _with_rows(self.db.query(StudentTeacherSubject))
            .filter(StudentTeacherSubject.student_id == student.id, StudentTeacherSubject.is_active.is_(True))
            .order_by(StudentTeacherSubject.created_at)
            .all()
        )

        specific_ids = [q.id for q in questionnaires if q.assignment_type == AssignmentType.SPECIFIC_STUDENTS]
        specific: Dict[UUID, List[StudentTeacherSubject]] = {}
        for batch in chunks(specific_ids, DETAIL_BATCH_SIZE):
            rows = (
                self.db.query(QuestionnaireAssignment.questionnaire_id, StudentTeacherSubject)
                .join(
                    StudentTeacherSubject,
                    StudentTeacherSubject.id == QuestionnaireAssignment.student_teacher_subject_id,
                )
                .options(
                    selectinload(StudentTeacherSubject.teacher),
                    selectinload(StudentTeacherSubject.subject),
                )
                .filter(
                    QuestionnaireAssignment.questionnaire_id.in_(batch),
                    StudentTeacherSubject.student_id == student.id,
                )
                .order_by(QuestionnaireAssignment.created_at)
                .all()
            )
            for qid, sts in rows:
                specific.setdefault(qid, []).append(sts)

        out: List[StudentQuestionnaireOut] = []
        for q in questionnaires:
            if q.assignment_type == AssignmentType.SPECIFIC_STUDENTS:
                triples = specific.get(q.id, [])
            else:
                triples = own_triples
            if not triples:
                continue
            questions = [QuestionOut.model_validate(x) for x in q.questions]
            for sts in triples:
                out.append(
                    StudentQuestionnaireOut(
                        id=q.id,
                        title=q.title,
                        description=q.description,
                        is_anonymous=bool(q.is_anonymous),
                        is_submitted=submission_key(q.id, sts.subject_id, sts.teacher_id) in submitted,
                        created_at=q.created_at,
                        questions=questions,
                        subject=RefOut.model_validate(sts.subject),
                        teacher=RefOut.model_validate(sts.teacher) if sts.teacher is not None else None,
                    )
                )
        return out

    # -------- admin picker data --------
    def get_assignment_data(
        self, subject_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None
    ) -> QuestionnaireAssignmentDataOut:
        subjects = self.db.query(Subject).order_by(Subject.name).all()
        teachers = self.db.query(Teacher).order_by(Teacher.name).all()
        students = self.db.query(Student).order_by(Student.name).all()

        total = self.active_triple_count(subject_id, teacher_id)
        log.info("Loading %d active triples for assignment data", total)

        # rows already loaded above are reused from the session identity map
        assignments = [
            triple_out(sts)
            for sts in self.iter_active_triples(subject_id, teacher_id)
            if sts.student is not None and sts.subject is not None
        ]
        return QuestionnaireAssignmentDataOut(
            subjects=[RefOut.model_validate(s) for s in subjects],
            teachers=[RefOut.model_validate(t) for t in teachers],
            students=[StudentRefOut.model_validate(s) for s in students],
            assignments=assignments,
        )
