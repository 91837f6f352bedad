# questionnaire_api/services/imports.py
"""
Semicolon separated bulk import and export of students, teachers, subjects
and their triples.

Import lines: ZAK;EMAIL;HESLO;UCITEL;PREDMET (student, email, password,
teacher, subject). Export lines: ZAK;EMAIL;UCITEL;PREDMET.
"""
from __future__ import annotations

import csv
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from questionnaire_api.core.errors import AppError, ValidationFailed
from questionnaire_api.core.logging import get_logger
from questionnaire_api.models.enums import ImportMode, Role
from questionnaire_api.models.import_history import ImportHistory
from questionnaire_api.models.profile import Profile
from questionnaire_api.models.school import Student, StudentTeacherSubject, Subject, Teacher
from questionnaire_api.schemas.import_export import ImportRecord, ImportResultOut
from questionnaire_api.services.assignments import chunks
from questionnaire_api.services.identity import IdentityError, IdentityProvider
from questionnaire_api.services.students import split_name

log = get_logger("imports")

IMPORT_HEADER = "ZAK;EMAIL;HESLO;UCITEL;PREDMET"
EXPORT_HEADER = "ZAK;EMAIL;UCITEL;PREDMET"
NO_DATA_LINE = "# No data to export"
IMPORT_CHUNK_SIZE = 1000
EXPORT_BATCH_SIZE = 1000

TripleKey = Tuple[Optional[UUID], Optional[UUID], UUID]


def parse_import_data(data: str) -> List[ImportRecord]:
    """Blank lines and a leading header are skipped; any other line needs exactly 5 fields."""
    records: List[ImportRecord] = []
    lines = data.strip().split("\n")
    for i, raw in enumerate(lines):
        line = raw.strip()
        if not line or (i == 0 and IMPORT_HEADER in line.upper()):
            continue
        parts = [p.strip() for p in next(csv.reader([line], delimiter=";", quoting=csv.QUOTE_NONE))]
        if len(parts) != 5:
            raise ValidationFailed(
                f'Invalid line format at line {i + 1}: "{line}". '
                f"Expected 5 fields ({IMPORT_HEADER}), got {len(parts)}"
            )
        student, email, password, teacher, subject = parts
        records.append(ImportRecord(student=student, email=email, password=password, teacher=teacher, subject=subject))
    return records


def _empty_result(success: bool, message: str, **counts) -> ImportResultOut:
    return ImportResultOut(success=success, message=message, **counts)


class ImportService:
    def __init__(self, db: Session, identity: Optional[IdentityProvider] = None):
        self.db = db
        self.identity = identity

    # -------- clear --------
    def _remove_student_accounts(self, emails: List[str]) -> None:
        if not emails or self.identity is None or not self.identity.has_admin:
            return
        log.info("Deleting auth accounts for %d students", len(emails))
        try:
            users = self.identity.admin_list_users()
        except IdentityError as e:
            log.error("Could not list auth users, student accounts kept: %s", e.message)
            return
        by_email = {u.email: u.id for u in users if u.email}
        user_ids = [by_email[e] for e in emails if e in by_email]
        if not user_ids:
            return
        self.db.query(Profile).filter(Profile.id.in_(user_ids)).delete(synchronize_session=False)
        self.db.commit()
        for user_id in user_ids:
            try:
                self.identity.admin_delete_user(user_id)
            except IdentityError as e:
                log.error("Failed to delete auth user %s: %s", user_id, e.message)

    def clear_all(self) -> None:
        """Deletes triples, students, teachers and subjects plus the students' login accounts."""
        emails = [e for (e,) in self.db.query(Student.email).filter(Student.email.isnot(None)).all()]
        self._remove_student_accounts(emails)
        for model in (StudentTeacherSubject, Student, Teacher, Subject):
            self.db.query(model).delete(synchronize_session=False)
            self.db.commit()
        self.db.expire_all()

    # -------- export --------
    def export(self) -> str:
        base = (
            self.db.query(StudentTeacherSubject)
            .options(
                selectinload(StudentTeacherSubject.student),
                selectinload(StudentTeacherSubject.teacher),
                selectinload(StudentTeacherSubject.subject),
            )
            .filter(StudentTeacherSubject.is_active.is_(True))
            .filter(StudentTeacherSubject.student_id.isnot(None))
        )
        total = base.count()
        log.info("Total records to export: %d", total)

        rows: List[StudentTeacherSubject] = []
        offset = 0
        while offset < total:
            batch = base.order_by(StudentTeacherSubject.id).offset(offset).limit(EXPORT_BATCH_SIZE).all()
            if not batch:
                break
            rows.extend(batch)
            offset += len(batch)
            log.info("Fetched %d / %d records", len(rows), total)

        lines = [
            ";".join(
                (
                    r.student.name,
                    r.student.email or "",
                    r.teacher.name if r.teacher else "",
                    r.subject.name if r.subject else "",
                )
            )
            for r in rows
        ]
        if not lines:
            return f"{EXPORT_HEADER}\n{NO_DATA_LINE}"
        log.info("Exporting %d records", len(lines))
        return "\n".join([EXPORT_HEADER, *lines])

    # -------- import --------
    def _existing_triples(self) -> Set[TripleKey]:
        keys: Set[TripleKey] = set()
        q = self.db.query(
            StudentTeacherSubject.student_id, StudentTeacherSubject.teacher_id, StudentTeacherSubject.subject_id
        ).order_by(StudentTeacherSubject.id)
        offset = 0
        while True:
            batch = q.offset(offset).limit(IMPORT_CHUNK_SIZE).all()
            keys.update((s, t, sub) for s, t, sub in batch)
            if len(batch) < IMPORT_CHUNK_SIZE:
                break
            offset += IMPORT_CHUNK_SIZE
        log.info("Loaded %d existing relationships", len(keys))
        return keys

    def _insert_named(self, model, names: List[str]) -> Dict[str, UUID]:
        rows = [model(name=n) for n in names]
        self.db.add_all(rows)
        self.db.commit()
        return {r.name: r.id for r in rows}

    def _create_accounts(self, logins: Dict[str, Tuple[str, str]], errors: List[str]) -> None:
        """`logins` maps email -> (student name, password)."""
        if not logins:
            return
        if self.identity is None or not self.identity.has_admin:
            errors.append("Identity provider admin access not configured; no login accounts created")
            return
        existing = {u.email for u in self.identity.admin_list_users() if u.email}
        to_create = [email for email in logins if email not in existing]
        log.info(
            "%d students already have auth accounts, creating %d new accounts",
            len(logins) - len(to_create),
            len(to_create),
        )

        profiles: List[Profile] = []
        for email in to_create:
            name, password = logins[email]
            try:
                user = self.identity.admin_create_user(email, password, {"role": Role.STUDENT.value})
            except IdentityError as e:
                if not e.already_registered:
                    errors.append(f"Failed to create auth user for {email}: {e.message}")
                continue
            first, last = split_name(name)
            profiles.append(Profile(id=user.id, email=email, role=Role.STUDENT.value, first_name=first, last_name=last))

        for chunk in chunks(profiles, 100):
            try:
                for p in chunk:
                    self.db.merge(p)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                errors.append(f"Failed to create profiles batch: {e}")

    def import_data(self, data: str, mode: ImportMode, user_id: Optional[UUID] = None) -> ImportResultOut:
        stats = dict(
            total_records=0, new_students=0, new_teachers=0, new_subjects=0, updated_records=0, duplicates_skipped=0
        )
        errors: List[str] = []
        try:
            records = parse_import_data(data)
            stats["total_records"] = len(records)

            if ImportMode(mode) is ImportMode.REPLACE:
                self.clear_all()

            students_by_email: Dict[str, Tuple[str, str]] = {}
            for r in records:
                students_by_email.setdefault(r.email, (r.student, r.password))
            teacher_names = list(dict.fromkeys(r.teacher for r in records))
            subject_names = list(dict.fromkeys(r.subject for r in records))

            student_ids: Dict[str, UUID] = {
                email: sid for sid, email in self.db.query(Student.id, Student.email).all() if email is not None
            }
            teacher_ids: Dict[str, UUID] = {name: tid for tid, name in self.db.query(Teacher.id, Teacher.name).all()}
            subject_ids: Dict[str, UUID] = {name: sid for sid, name in self.db.query(Subject.id, Subject.name).all()}

            new_students = [
                Student(name=name, email=email or None)
                for email, (name, _) in students_by_email.items()
                if email not in student_ids
            ]
            if new_students:
                self.db.add_all(new_students)
                self.db.commit()
                student_ids.update({s.email or "": s.id for s in new_students})
                stats["new_students"] = len(new_students)

            new_teachers = [n for n in teacher_names if n not in teacher_ids]
            if new_teachers:
                teacher_ids.update(self._insert_named(Teacher, new_teachers))
                stats["new_teachers"] = len(new_teachers)

            new_subjects = [n for n in subject_names if n not in subject_ids]
            if new_subjects:
                subject_ids.update(self._insert_named(Subject, new_subjects))
                stats["new_subjects"] = len(new_subjects)

            seen = self._existing_triples()
            pending: List[StudentTeacherSubject] = []
            for r in records:
                sid, tid, subid = student_ids.get(r.email), teacher_ids.get(r.teacher), subject_ids.get(r.subject)
                if not (sid and tid and subid):
                    errors.append(f"Missing IDs for record: {r.student}({r.email})-{r.teacher}-{r.subject}")
                    continue
                key = (sid, tid, subid)
                if key in seen:
                    stats["duplicates_skipped"] += 1
                    continue
                seen.add(key)
                pending.append(StudentTeacherSubject(student_id=sid, teacher_id=tid, subject_id=subid, is_active=True))

            for n, chunk in enumerate(chunks(pending, IMPORT_CHUNK_SIZE), start=1):
                try:
                    self.db.add_all(chunk)
                    self.db.commit()
                    stats["updated_records"] += len(chunk)
                except SQLAlchemyError as e:
                    self.db.rollback()
                    errors.append(f"Error inserting relationships batch {n}: {e}")

            logins = {email: v for email, v in students_by_email.items() if email}
            self._create_accounts(logins, errors)

            self._record_history(
                user_id,
                status="completed_with_errors" if errors else "completed",
                details={"errors": errors} if errors else None,
                **{k: v for k, v in stats.items() if k != "duplicates_skipped"},
            )
        except (AppError, IdentityError, SQLAlchemyError) as e:
            self.db.rollback()
            message = getattr(e, "message", None) or str(e)
            log.error("Import failed: %s", message)
            return _empty_result(False, f"Import failed: {message}", errors=[*errors, message], **stats)

        message = "Data byla úspěšně nahrazena" if ImportMode(mode) is ImportMode.REPLACE else "Data byla úspěšně přidána"
        return _empty_result(True, message, errors=errors, **stats)

    def _record_history(self, user_id: Optional[UUID], status: str, details: Optional[dict], **counts) -> None:
        self.db.add(ImportHistory(imported_by=user_id, status=status, error_details=details, **counts))
        self.db.commit()

    # -------- delete all --------
    def delete_all_data(self, user_id: Optional[UUID] = None) -> ImportResultOut:
        try:
            counts = {
                "relationships": self.db.query(StudentTeacherSubject).count(),
                "students": self.db.query(Student).count(),
                "teachers": self.db.query(Teacher).count(),
                "subjects": self.db.query(Subject).count(),
            }
            self.clear_all()
            self._record_history(user_id, status="data_cleared", details={"deleted": counts})
        except (IdentityError, SQLAlchemyError) as e:
            self.db.rollback()
            message = getattr(e, "message", None) or str(e)
            return _empty_result(False, f"Mazání selhalo: {message}", errors=[message])

        return _empty_result(
            True,
            f"Smazáno: {counts['relationships']} vztahů, {counts['students']} studentů, "
            f"{counts['teachers']} učitelů, {counts['subjects']} předmětů",
        )
