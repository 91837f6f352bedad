# questionnaire_api/services/questionnaires.py
"""
Questionnaire groups and the questionnaire lifecycle (create, update,
duplicate, delete).

Every step commits on its own. Create and update do not undo earlier steps
when a later one fails, so a failure can leave e.g. a questionnaire without
all of its questions; the error names the step that failed.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import Internal, NotFound, handle_database_error
from questionnaire_api.core.logging import get_logger
from questionnaire_api.core.pagination import GROUP_PAGE_SIZE, ilike_pattern, paginate
from questionnaire_api.models.enums import AssignmentType, QuestionType
from questionnaire_api.models.mixins import utc_sequence
from questionnaire_api.models.questionnaire import (
    Question,
    Questionnaire,
    QuestionnaireAssignment,
    QuestionnaireGroup,
    QuestionOption,
)
from questionnaire_api.schemas.questionnaire import (
    GroupIn,
    GroupListOut,
    GroupOut,
    OptionIn,
    QuestionIn,
    QuestionnaireAssignmentDataOut,
    QuestionnaireCreateIn,
    QuestionnaireListOut,
    QuestionnaireOut,
    QuestionnaireUpdateIn,
    StudentQuestionnaireOut,
)
from questionnaire_api.services.assignments import AssignmentResolver, chunks, triple_out

log = get_logger("questionnaires")

ASSIGNMENT_INSERT_BATCH = 1000

COPY_PATTERN = re.compile(r"^(.+?)\s*\(kopie(?:\s+(\d+))?\)$")


def copy_title(title: str, exists: Callable[[str], bool]) -> str:
    """
    "X" -> "X (kopie)", "X (kopie)" -> "X (kopie 2)", "X (kopie N)" -> "X (kopie N+1)";
    while the candidate is taken, keep counting up from 2.
    """
    match = COPY_PATTERN.match(title)
    if match:
        base = match.group(1)
        current = int(match.group(2)) if match.group(2) else 1
        candidate = f"{base} (kopie {current + 1})"
    else:
        base = title
        candidate = f"{title} (kopie)"

    counter = 2
    while exists(candidate):
        candidate = f"{base} (kopie {counter})"
        counter += 1
    return candidate


class QuestionnaireService:
    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentResolver(db)

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            handle_database_error(e, operation)

    # ---------------- groups ----------------
    def list_groups(self, index: int = 0, name_filter: Optional[str] = None) -> GroupListOut:
        q = self.db.query(QuestionnaireGroup)
        if name_filter:
            q = q.filter(QuestionnaireGroup.name.ilike(ilike_pattern(name_filter)))
        page = paginate(q.order_by(QuestionnaireGroup.created_at.desc()), index, GROUP_PAGE_SIZE)
        return GroupListOut(
            data=[GroupOut.model_validate(g) for g in page.items], total=page.total, has_more=page.has_more
        )

    def get_group(self, group_id: UUID) -> Optional[GroupOut]:
        group = self.db.get(QuestionnaireGroup, group_id)
        return GroupOut.model_validate(group) if group else None

    def create_group(self, name: str, description: Optional[str] = None) -> GroupOut:
        group = QuestionnaireGroup(name=name, description=description)
        self.db.add(group)
        self._commit("create questionnaire group")
        return GroupOut.model_validate(group)

    def update_group(self, group_id: UUID, data: GroupIn) -> GroupOut:
        group = self.db.get(QuestionnaireGroup, group_id)
        if group is None:
            raise NotFound("Questionnaire group not found")
        for field in data.model_fields_set:
            value = getattr(data, field)
            if field == "name" and value is None:
                continue
            setattr(group, field, value)
        self._commit("update questionnaire group")
        return GroupOut.model_validate(group)

    def delete_group(self, group_id: UUID) -> bool:
        if self.db.get(QuestionnaireGroup, group_id) is None:
            raise NotFound("Questionnaire group not found")
        # questionnaires and everything below them go with the group (ON DELETE CASCADE)
        self.db.query(QuestionnaireGroup).filter(QuestionnaireGroup.id == group_id).delete(synchronize_session=False)
        self._commit("delete questionnaire group")
        self.db.expire_all()
        return True

    # ---------------- reads ----------------
    def list_questionnaires(
        self,
        group_id: UUID,
        index: int = 0,
        title_filter: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> QuestionnaireListOut:
        q = self.db.query(Questionnaire).filter(Questionnaire.group_id == group_id)
        if title_filter:
            q = q.filter(Questionnaire.title.ilike(ilike_pattern(title_filter)))
        if is_active is not None:
            q = q.filter(Questionnaire.is_active.is_(is_active))
        page = paginate(q.order_by(Questionnaire.created_at.desc()), index, GROUP_PAGE_SIZE)
        data = [
            QuestionnaireOut.model_validate({**_scalars(x), "questions": [], "assignments": []}) for x in page.items
        ]
        return QuestionnaireListOut(data=data, total=page.total, has_more=page.has_more)

    def get(self, questionnaire_id: UUID) -> Optional[QuestionnaireOut]:
        """Questionnaire with ordered questions/options and its assignment triples (batched)."""
        questionnaire = (
            self.db.query(Questionnaire)
            .populate_existing()
            .options(selectinload(Questionnaire.questions).selectinload(Question.options))
            .filter(Questionnaire.id == questionnaire_id)
            .first()
        )
        if questionnaire is None:
            return None

        ids = self.assignments.assigned_triple_ids(questionnaire.id)
        triples = self.assignments.triples_by_ids(ids) if ids else []
        assignments = [triple_out(t) for t in triples if t.student is not None and t.subject is not None]
        if ids:
            log.info("Questionnaire %s: returning %d of %d assignments", questionnaire.id, len(assignments), len(ids))

        out = QuestionnaireOut.model_validate(questionnaire)
        out.assignments = assignments
        return out

    def require(self, questionnaire_id: UUID) -> QuestionnaireOut:
        out = self.get(questionnaire_id)
        if out is None:
            raise NotFound("Questionnaire not found")
        return out

    # ---------------- lifecycle ----------------
    def _insert_assignments(self, questionnaire_id: UUID, triple_ids: Iterable[UUID], label: str) -> int:
        ids = list(dict.fromkeys(triple_ids))
        for n, batch in enumerate(chunks(ids, ASSIGNMENT_INSERT_BATCH), start=1):
            self.db.add_all(
                [QuestionnaireAssignment(questionnaire_id=questionnaire_id, student_teacher_subject_id=i) for i in batch]
            )
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise Internal(f"Failed to {label} (batch {n}): {e}") from e
        return len(ids)

    def _insert_options(self, question_id: UUID, options: List[OptionIn]) -> None:
        stamps = utc_sequence(len(options))
        self.db.add_all(
            [
                QuestionOption(
                    question_id=question_id,
                    text=o.text,
                    order_index=o.order_index if o.order_index is not None else i,
                    created_at=stamps[i],
                )
                for i, o in enumerate(options)
            ]
        )

    def _insert_questions(self, questionnaire_id: UUID, questions: List[QuestionIn]) -> None:
        created = []
        stamps = utc_sequence(len(questions))
        for i, q in enumerate(questions):
            row = Question(
                questionnaire_id=questionnaire_id,
                text=q.text,
                type=q.type.value,
                required=q.required,
                order_index=q.order_index if q.order_index is not None else i,
                created_at=stamps[i],
            )
            self.db.add(row)
            created.append((row, q))
        self._commit("create questions")

        for row, q in created:
            if q.type == QuestionType.MULTIPLE_CHOICE and q.options:
                self._insert_options(row.id, q.options)
        self._commit("create question options")

    def create(self, data: QuestionnaireCreateIn) -> QuestionnaireOut:
        if self.db.get(QuestionnaireGroup, data.group_id) is None:
            raise NotFound("Questionnaire group not found")

        questionnaire = Questionnaire(
            group_id=data.group_id,
            title=data.title,
            description=data.description,
            is_active=True,
            is_anonymous=data.is_anonymous,
            assignment_type=data.assignment_type.value,
        )
        self.db.add(questionnaire)
        self._commit("create questionnaire")

        if data.assignment_type == AssignmentType.SPECIFIC_STUDENTS and data.assignment_ids:
            n = self._insert_assignments(questionnaire.id, data.assignment_ids, "assign questionnaire")
            log.info("Questionnaire %s assigned to %d triples", questionnaire.id, n)

        if data.questions:
            self._insert_questions(questionnaire.id, data.questions)

        return self.require(questionnaire.id)

    def update(self, questionnaire_id: UUID, data: QuestionnaireUpdateIn) -> QuestionnaireOut:
        questionnaire = self.db.get(Questionnaire, questionnaire_id)
        if questionnaire is None:
            raise NotFound("Questionnaire not found")
        fields = data.model_fields_set

        # scalar patch
        changed = False
        for name in ("title", "description", "is_active", "is_anonymous", "assignment_type"):
            if name not in fields:
                continue
            value = getattr(data, name)
            if value is None and name != "description":
                continue
            if name == "assignment_type":
                value = value.value
            setattr(questionnaire, name, value)
            changed = True
        if changed:
            self._commit("update questionnaire")

        # assignment set is replaced, never diffed
        if "assignment_type" in fields or "assignment_ids" in fields:
            self.db.query(QuestionnaireAssignment).filter(
                QuestionnaireAssignment.questionnaire_id == questionnaire_id
            ).delete(synchronize_session=False)
            self._commit("clear assignments")

            new_type = data.assignment_type if "assignment_type" in fields else None
            specific = new_type == AssignmentType.SPECIFIC_STUDENTS or (new_type is None and data.assignment_ids is not None)
            if specific and data.assignment_ids:
                self._insert_assignments(questionnaire_id, data.assignment_ids, "assign questionnaire")

        if data.questions is not None:
            self._sync_questions(questionnaire_id, data.questions)

        return self.require(questionnaire_id)

    def _sync_questions(self, questionnaire_id: UUID, questions: List[QuestionIn]) -> None:
        """Diff by id: unknown ids are created, known ids updated (options replaced), the rest deleted."""
        existing = {
            q.id: q for q in self.db.query(Question).filter(Question.questionnaire_id == questionnaire_id).all()
        }
        keep = {q.id for q in questions if q.id is not None}
        to_delete = [qid for qid in existing if qid not in keep]
        if to_delete:
            self.db.query(Question).filter(Question.id.in_(to_delete)).delete(synchronize_session=False)
            self._commit("delete questions")

        stamps = utc_sequence(len(questions))
        for i, q in enumerate(questions):
            order_index = q.order_index if q.order_index is not None else i
            row = existing.get(q.id) if q.id is not None else None
            if row is None:
                row = Question(questionnaire_id=questionnaire_id, created_at=stamps[i])
                self.db.add(row)
            row.text = q.text
            row.type = q.type.value
            row.required = q.required
            row.order_index = order_index
            self._commit("save question")

            if q.type == QuestionType.MULTIPLE_CHOICE and q.options is not None:
                self.db.query(QuestionOption).filter(QuestionOption.question_id == row.id).delete(
                    synchronize_session=False
                )
                self._insert_options(row.id, q.options)
                self._commit("replace question options")

    def duplicate(self, questionnaire_id: UUID) -> QuestionnaireOut:
        original = self.require(questionnaire_id)

        def title_taken(title: str) -> bool:
            return (
                self.db.query(Questionnaire.id)
                .filter(Questionnaire.group_id == original.group_id, Questionnaire.title == title)
                .first()
                is not None
            )

        copy = Questionnaire(
            group_id=original.group_id,
            title=copy_title(original.title, title_taken),
            description=original.description,
            is_active=False,  # copies always start closed
            is_anonymous=original.is_anonymous,
            assignment_type=original.assignment_type.value,
        )
        self.db.add(copy)
        self._commit("duplicate questionnaire")

        stamps = utc_sequence(len(original.questions))
        for i, q in enumerate(original.questions):
            row = Question(
                questionnaire_id=copy.id,
                text=q.text,
                type=q.type.value,
                required=q.required,
                order_index=q.order_index,
                created_at=stamps[i],
            )
            self.db.add(row)
            self._commit("duplicate question")
            if q.type == QuestionType.MULTIPLE_CHOICE and q.options:
                self._insert_options(row.id, [OptionIn(text=o.text, order_index=o.order_index) for o in q.options])
                self._commit("duplicate question options")

        if original.assignment_type == AssignmentType.SPECIFIC_STUDENTS:
            ids = self.assignments.assigned_triple_ids(original.id)
            if ids:
                self._insert_assignments(copy.id, ids, "duplicate assignments")

        log.info("Questionnaire %s duplicated as %s (%r)", original.id, copy.id, copy.title)
        return self.require(copy.id)

    def delete(self, questionnaire_id: UUID) -> bool:
        if self.db.get(Questionnaire, questionnaire_id) is None:
            raise NotFound("Questionnaire not found")
        # questions, options, assignments and responses are removed by ON DELETE CASCADE
        self.db.query(Questionnaire).filter(Questionnaire.id == questionnaire_id).delete(synchronize_session=False)
        self._commit("delete questionnaire")
        self.db.expire_all()
        return True

    def delete_many(self, ids: List[UUID]) -> int:
        if not ids:
            return 0
        n = self.db.query(Questionnaire).filter(Questionnaire.id.in_(ids)).delete(synchronize_session=False)
        self._commit("delete questionnaires")
        self.db.expire_all()
        return n

    # ---------------- student / picker views ----------------
    def student_questionnaires(self, student_user_id: UUID) -> List[StudentQuestionnaireOut]:
        profile, student = self.assignments.student_for_user(student_user_id)
        return self.assignments.eligible_questionnaires_for(student, profile.email)

    def student_can_open(self, student_user_id: UUID, questionnaire_id: UUID) -> bool:
        return any(q.id == questionnaire_id for q in self.student_questionnaires(student_user_id))

    def assignment_data(
        self, subject_id: Optional[UUID] = None, teacher_id: Optional[UUID] = None
    ) -> QuestionnaireAssignmentDataOut:
        return self.assignments.get_assignment_data(subject_id, teacher_id)


def _scalars(q: Questionnaire) -> dict:
    return {
        "id": q.id,
        "group_id": q.group_id,
        "title": q.title,
        "description": q.description,
        "is_active": q.is_active,
        "is_anonymous": q.is_anonymous,
        "assignment_type": q.assignment_type,
        "created_at": q.created_at,
        "updated_at": q.updated_at,
    }
