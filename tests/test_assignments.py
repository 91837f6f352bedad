from questionnaire_api.models.enums import AssignmentType, QuestionType
from questionnaire_api.models.response import QuestionnaireResponse
from questionnaire_api.services.assignments import AssignmentResolver, submission_key


def test_submission_key_uses_null_sentinel_for_missing_teacher():
    assert submission_key("q", "s", None) == "q-s-null"
    assert submission_key("q", "s", "t") == "q-s-t"


def test_all_students_questionnaire_lists_every_active_triple_of_the_student(db, make):
    alice = make.student("Alice", "alice@school.cz")
    math, physics = make.subject("Math"), make.subject("Physics")
    lee = make.teacher("Ms. Lee")
    make.triple(alice, lee, math)
    make.triple(alice, None, physics)
    make.triple(alice, lee, physics, is_active=False)
    q = make.questionnaire()
    make.question(q, QuestionType.RATING)

    entries = AssignmentResolver(db).eligible_questionnaires_for(alice)

    assert [(e.subject.name, e.teacher.name if e.teacher else None) for e in entries] == [
        ("Math", "Ms. Lee"),
        ("Physics", None),
    ]
    assert all(e.id == q.id and not e.is_submitted for e in entries)
    assert len(entries[0].questions) == 1


def test_specific_questionnaire_only_lists_assigned_triples(db, make):
    alice, bob = make.student("Alice", "alice@school.cz"), make.student("Bob", "bob@school.cz")
    math, art = make.subject("Math"), make.subject("Art")
    t_alice_math = make.triple(alice, None, math)
    make.triple(alice, None, art)
    t_bob_math = make.triple(bob, None, math)
    q = make.questionnaire(assignment_type=AssignmentType.SPECIFIC_STUDENTS)
    make.assign(q, t_alice_math)
    make.assign(q, t_bob_math)

    entries = AssignmentResolver(db).eligible_questionnaires_for(alice)
    assert [e.subject.name for e in entries] == ["Math"]


def test_inactive_questionnaires_are_never_eligible(db, make):
    alice = make.student()
    make.triple(alice, None, make.subject())
    make.questionnaire(is_active=False)
    assert AssignmentResolver(db).eligible_questionnaires_for(alice) == []


def test_submitted_pairs_are_flagged_including_null_teacher(db, make):
    alice = make.student("Alice", "alice@school.cz")
    math = make.subject("Math")
    lee = make.teacher("Ms. Lee")
    make.triple(alice, None, math)
    make.triple(alice, lee, math)
    q = make.questionnaire()
    db.add(QuestionnaireResponse(questionnaire_id=q.id, student_email=alice.email, subject_id=math.id, teacher_id=None))
    db.commit()

    entries = AssignmentResolver(db).eligible_questionnaires_for(alice)
    flags = {(e.teacher.name if e.teacher else None): e.is_submitted for e in entries}
    assert flags == {None: True, "Ms. Lee": False}


def test_count_assigned_depends_on_assignment_type(db, make):
    alice, bob = make.student("Alice", "alice@school.cz"), make.student("Bob", "bob@school.cz")
    math = make.subject("Math")
    lee = make.teacher("Ms. Lee")
    t1 = make.triple(alice, lee, math)
    make.triple(bob, lee, math)
    make.triple(None, lee, math)  # teacher teaches the subject, no student yet
    make.triple(bob, None, math, is_active=False)

    resolver = AssignmentResolver(db)
    everyone = make.questionnaire(title="everyone")
    specific = make.questionnaire(title="specific", assignment_type=AssignmentType.SPECIFIC_STUDENTS)
    make.assign(specific, t1)

    assert resolver.count_assigned(everyone) == 3
    assert resolver.count_assigned(specific) == 1


def test_triple_batches_cover_all_rows_in_order(db, make):
    math = make.subject("Math")
    rows = [make.triple(make.student(f"S{i}", f"s{i}@school.cz"), None, math) for i in range(5)]
    resolver = AssignmentResolver(db)

    streamed = list(resolver.iter_active_triples(batch_size=2))
    assert sorted(t.id for t in streamed) == sorted(r.id for r in rows)

    wanted = [rows[3].id, rows[0].id, rows[4].id]
    assert [t.id for t in resolver.triples_by_ids(wanted)] == wanted


def test_assignment_data_filters_by_subject(db, make):
    alice = make.student()
    math, art = make.subject("Math"), make.subject("Art")
    make.triple(alice, None, math)
    make.triple(alice, None, art)
    make.triple(None, make.teacher(), math)

    data = AssignmentResolver(db).get_assignment_data(subject_id=math.id)
    assert [s.name for s in data.subjects] == ["Art", "Math"]
    assert [(a.student.name, a.subject.name) for a in data.assignments] == [("Alice", "Math")]


def test_eligible_triples_follow_assignment_type(db, make):
    math = make.subject("Math")
    t1 = make.triple(make.student("A", "a@school.cz"), None, math)
    t2 = make.triple(make.student("B", "b@school.cz"), None, math)
    make.triple(make.student("C", "c@school.cz"), None, math, is_active=False)

    resolver = AssignmentResolver(db)
    everyone = make.questionnaire(title="everyone")
    specific = make.questionnaire(title="specific", assignment_type=AssignmentType.SPECIFIC_STUDENTS)
    make.assign(specific, t2)

    assert {t.id for t in resolver.eligible_triples_for(everyone)} == {t1.id, t2.id}
    assert [t.id for t in resolver.eligible_triples_for(specific)] == [t2.id]
