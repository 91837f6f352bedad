# questionnaire_api/api/types.py
"""
GraphQL object and input types.

Output types are read by attribute from the service's pydantic models, so the
field names here mirror the schemas in questionnaire_api.schemas (strawberry
exposes them in camelCase).
"""
import dataclasses
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

import strawberry

from questionnaire_api.models.enums import AssignmentType, ImportMode, QuestionType, Role

# domain enums are exposed as-is
for _enum in (Role, AssignmentType, QuestionType, ImportMode):
    strawberry.enum(_enum)


def input_to_dict(value: Any) -> Any:
    """Strawberry input -> plain data for pydantic; fields the client omitted are left out."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: input_to_dict(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if getattr(value, f.name) is not strawberry.UNSET
        }
    if isinstance(value, list):
        return [input_to_dict(v) for v in value]
    return value


# ---------- Auth / admins ----------

@strawberry.type
class User:
    id: UUID
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: Role
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@strawberry.type
class AuthPayload:
    user: User
    token: str
    refresh_token: str


@strawberry.type
class UpdateProfileResponse:
    success: bool
    message: str
    user: Optional[User]


@strawberry.type
class AdminList:
    admins: List[User]
    total: int


@strawberry.type
class AdminResponse:
    success: bool
    message: str
    admin: Optional[User]


# ---------- Entities ----------

@strawberry.type
class EntityRef:
    id: UUID
    name: str


@strawberry.type
class Subject:
    id: UUID
    name: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@strawberry.type
class TeacherSubject:
    subject: EntityRef
    student_count: int


@strawberry.type
class Teacher:
    id: UUID
    name: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    subjects: List[TeacherSubject]


@strawberry.type
class StudentSubject:
    subject: EntityRef
    teacher: Optional[EntityRef]


@strawberry.type
class Student:
    id: UUID
    name: str
    email: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    subjects: List[StudentSubject]


@strawberry.type
class SubjectList:
    subjects: List[Subject]
    total: int
    has_more: bool


@strawberry.type
class TeacherList:
    teachers: List[Teacher]
    total: int
    has_more: bool


@strawberry.type
class StudentList:
    students: List[Student]
    total: int
    has_more: bool


@strawberry.type
class SubjectResponse:
    success: bool
    message: str
    subject: Optional[Subject]


@strawberry.type
class TeacherResponse:
    success: bool
    message: str
    teacher: Optional[Teacher]


@strawberry.type
class StudentResponse:
    success: bool
    message: str
    student: Optional[Student]


@strawberry.type
class StudentWithSubjects:
    id: UUID
    name: str
    subjects: List[Subject]


@strawberry.type
class AssignmentData:
    subjects: List[Subject]
    students: List[StudentWithSubjects]


@strawberry.type
class SubjectWithTeachers:
    id: UUID
    name: str
    teachers: List[EntityRef]


@strawberry.type
class StudentAssignmentData:
    subjects: List[SubjectWithTeachers]


# ---------- Questionnaires ----------

@strawberry.type
class QuestionnaireGroup:
    id: UUID
    name: str
    description: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@strawberry.type
class QuestionnaireGroupList:
    data: List[QuestionnaireGroup]
    total: int
    has_more: bool


@strawberry.type
class QuestionnaireGroupResponse:
    success: bool
    message: str
    group: Optional[QuestionnaireGroup]


@strawberry.type
class QuestionOption:
    id: UUID
    question_id: UUID
    text: str
    order_index: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


@strawberry.type
class Question:
    id: UUID
    questionnaire_id: UUID
    text: str
    type: QuestionType
    required: bool
    order_index: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    options: List[QuestionOption]


@strawberry.type
class StudentRef:
    id: UUID
    name: str
    email: Optional[str]


@strawberry.type
class AssignmentTriple:
    id: UUID
    student: StudentRef
    teacher: Optional[EntityRef]
    subject: EntityRef


@strawberry.type
class Questionnaire:
    id: UUID
    group_id: UUID
    title: str
    description: Optional[str]
    is_active: bool
    is_anonymous: bool
    assignment_type: AssignmentType
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    questions: List[Question]
    assignments: List[AssignmentTriple]


@strawberry.type
class QuestionnaireList:
    data: List[Questionnaire]
    total: int
    has_more: bool


@strawberry.type
class QuestionnaireMutationResponse:
    success: bool
    message: str
    questionnaire: Optional[Questionnaire]


@strawberry.type
class StudentQuestionnaire:
    id: UUID
    title: str
    description: Optional[str]
    is_anonymous: bool
    is_submitted: bool
    created_at: Optional[datetime]
    questions: List[Question]
    subject: EntityRef
    teacher: Optional[EntityRef]


@strawberry.type
class QuestionnaireAssignmentData:
    subjects: List[EntityRef]
    teachers: List[EntityRef]
    students: List[StudentRef]
    assignments: List[AssignmentTriple]


@strawberry.type
class SubmitResponseResult:
    success: bool
    message: str
    response_id: Optional[UUID]


# ---------- Results ----------

@strawberry.type
class OptionCount:
    option: QuestionOption
    count: int
    percentage: float


@strawberry.type
class OptionResponse:
    id: UUID
    option: Optional[QuestionOption]
    respondent_info: Optional[str]
    submitted_at: Optional[datetime]


@strawberry.type
class RatingBucket:
    rating: int
    count: int
    percentage: float


@strawberry.type
class RatingResponse:
    id: UUID
    rating: int
    respondent_info: Optional[str]
    submitted_at: Optional[datetime]


@strawberry.type
class YesNoResponse:
    id: UUID
    answer: bool
    respondent_info: Optional[str]
    submitted_at: Optional[datetime]


@strawberry.type
class TextResponse:
    id: UUID
    text: str
    respondent_info: Optional[str]
    submitted_at: Optional[datetime]


@strawberry.type
class QuestionResult:
    question: Question
    total_responses: int
    option_counts: Optional[List[OptionCount]]
    option_responses: Optional[List[OptionResponse]]
    average_rating: Optional[float]
    rating_distribution: Optional[List[RatingBucket]]
    rating_responses: Optional[List[RatingResponse]]
    yes_count: Optional[int]
    no_count: Optional[int]
    yes_no_responses: Optional[List[YesNoResponse]]
    text_responses: Optional[List[TextResponse]]


@strawberry.type
class QuestionnaireResults:
    questionnaire: Questionnaire
    total_assigned: int
    total_responded: int
    response_rate: float
    question_results: List[QuestionResult]


# ---------- Import / export ----------

@strawberry.type
class ImportResult:
    success: bool
    message: str
    total_records: int
    new_students: int
    new_teachers: int
    new_subjects: int
    updated_records: int
    duplicates_skipped: int
    errors: List[str]


# ---------- Inputs ----------

@strawberry.input
class TeacherAssignmentInput:
    subject_id: UUID
    student_ids: List[UUID] = strawberry.field(default_factory=list)


@strawberry.input
class StudentAssignmentInput:
    subject_id: UUID
    teacher_id: Optional[UUID] = strawberry.UNSET


@strawberry.input
class OptionInput:
    text: str
    id: Optional[UUID] = strawberry.UNSET
    order_index: Optional[int] = strawberry.UNSET


@strawberry.input
class QuestionInput:
    text: str
    type: QuestionType
    id: Optional[UUID] = strawberry.UNSET
    required: bool = False
    order_index: Optional[int] = strawberry.UNSET
    options: Optional[List[OptionInput]] = strawberry.UNSET


@strawberry.input
class CreateQuestionnaireInput:
    group_id: UUID
    title: str
    description: Optional[str] = strawberry.UNSET
    is_anonymous: bool = False
    assignment_type: AssignmentType = AssignmentType.ALL_STUDENTS
    assignment_ids: List[UUID] = strawberry.field(default_factory=list)
    questions: List[QuestionInput] = strawberry.field(default_factory=list)


@strawberry.input
class UpdateQuestionnaireInput:
    title: Optional[str] = strawberry.UNSET
    description: Optional[str] = strawberry.UNSET
    is_active: Optional[bool] = strawberry.UNSET
    is_anonymous: Optional[bool] = strawberry.UNSET
    assignment_type: Optional[AssignmentType] = strawberry.UNSET
    assignment_ids: Optional[List[UUID]] = strawberry.UNSET
    questions: Optional[List[QuestionInput]] = strawberry.UNSET


@strawberry.input
class AnswerInput:
    question_id: UUID
    answer_text: Optional[str] = strawberry.UNSET
    answer_option_id: Optional[UUID] = strawberry.UNSET
    # non-integral ratings are rejected by the submission engine
    answer_rating: Optional[float] = strawberry.UNSET
    answer_boolean: Optional[bool] = strawberry.UNSET


@strawberry.input
class SubmitResponseInput:
    questionnaire_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = strawberry.UNSET
    answers: List[AnswerInput] = strawberry.field(default_factory=list)
