import uuid

import pytest

from questionnaire_api.core.errors import Forbidden, InvalidState, NotFound, Unauthenticated, ValidationFailed
from questionnaire_api.core.security import CurrentUser, decode_token
from questionnaire_api.models.enums import Role
from questionnaire_api.models.profile import Profile
from questionnaire_api.schemas.auth import CreateAdminIn, UpdateProfileIn
from questionnaire_api.services.admins import AdminService
from questionnaire_api.services.auth import INVALID_STUDENT_LOGIN, AuthService


@pytest.fixture
def admin_account(make, identity):
    user = identity.add_user("admin@school.cz", "pw")
    make.profile("admin@school.cz", Role.ADMIN, user_id=user.id, first_name="Ada", last_name="Admin")
    return user


def test_admin_login_returns_profile_and_tokens(db, identity, admin_account):
    out = AuthService(db, identity).admin_login("admin@school.cz", "pw")
    assert out.user.role is Role.ADMIN
    assert out.user.first_name == "Ada"
    assert decode_token(out.token)["sub"] == str(admin_account.id)
    assert out.refresh_token


def test_admin_login_wrong_password(db, identity, admin_account):
    with pytest.raises(Unauthenticated, match="Invalid email or password"):
        AuthService(db, identity).admin_login("admin@school.cz", "nope")


def test_admin_login_rejects_student_profile(db, make, identity):
    user = identity.add_user("alice@school.cz", "pw")
    make.profile("alice@school.cz", Role.STUDENT, user_id=user.id)
    with pytest.raises(Forbidden):
        AuthService(db, identity).admin_login("alice@school.cz", "pw")


def test_admin_login_without_profile(db, identity):
    identity.add_user("ghost@school.cz", "pw")
    with pytest.raises(NotFound, match="User profile not found"):
        AuthService(db, identity).admin_login("ghost@school.cz", "pw")


def test_refresh_rotates_tokens(db, identity, admin_account):
    svc = AuthService(db, identity)
    first = svc.admin_login("admin@school.cz", "pw")
    second = svc.refresh(first.refresh_token)
    assert second.refresh_token != first.refresh_token
    with pytest.raises(Unauthenticated, match="Invalid or expired refresh token"):
        svc.refresh(first.refresh_token)


def test_logout_always_succeeds(db, identity):
    svc = AuthService(db, identity)
    assert svc.logout("token-1") is True
    assert svc.logout(None) is True
    assert identity.signed_out == ["token-1"]


def test_student_first_login_creates_account(db, make, identity):
    make.student("Jana Nováková", "jana@school.cz")
    out = AuthService(db, identity).student_login("jana@school.cz", "chosen")

    assert out.user.role is Role.STUDENT
    assert (out.user.first_name, out.user.last_name) == ("Jana", "Nováková")
    assert identity.users["jana@school.cz"]["password"] == "chosen"
    assert db.get(Profile, out.user.id).email == "jana@school.cz"


def test_student_second_login_uses_existing_account(db, make, identity):
    make.student("Jana", "jana@school.cz")
    svc = AuthService(db, identity)
    first = svc.student_login("jana@school.cz", "chosen")
    again = svc.student_login("jana@school.cz", "chosen")
    assert again.user.id == first.user.id
    assert len(identity.users) == 1


def test_student_wrong_password(db, make, identity):
    make.student("Jana", "jana@school.cz")
    svc = AuthService(db, identity)
    svc.student_login("jana@school.cz", "chosen")
    with pytest.raises(Unauthenticated, match=INVALID_STUDENT_LOGIN):
        svc.student_login("jana@school.cz", "guess")


def test_unknown_student_email(db, identity):
    with pytest.raises(Unauthenticated, match=INVALID_STUDENT_LOGIN):
        AuthService(db, identity).student_login("nobody@school.cz", "pw")
    assert identity.users == {}


def test_failed_profile_insert_removes_new_account(db, make, identity):
    make.student("Jana", "jana@school.cz")
    # a profile already holds the email, so the new profile row violates uniqueness
    make.profile("jana@school.cz", Role.ADMIN)
    with pytest.raises(Unauthenticated):
        AuthService(db, identity).student_login("jana@school.cz", "chosen")
    assert identity.users == {}


def test_admin_cannot_sign_in_as_student(db, make, identity):
    make.student("Ada", "admin@school.cz")
    user = identity.add_user("admin@school.cz", "pw")
    make.profile("admin@school.cz", Role.ADMIN, user_id=user.id)
    with pytest.raises(Unauthenticated):
        AuthService(db, identity).student_login("admin@school.cz", "pw")


def test_current_user(db, identity, admin_user):
    svc = AuthService(db, identity)
    assert svc.current_user(None) is None
    assert svc.current_user(admin_user).email == "admin@school.cz"


def test_update_profile_changes_auth_email(db, identity, admin_account):
    svc = AuthService(db, identity)
    actor = CurrentUser(id=admin_account.id, email="admin@school.cz", role=Role.ADMIN)
    out = svc.update_profile(actor, UpdateProfileIn(first_name="Ada", last_name="Lovelace", email="ada@school.cz"))
    assert out.success is True
    assert out.user.last_name == "Lovelace"
    assert "ada@school.cz" in identity.users


def test_update_profile_restored_when_auth_update_fails(db, identity, admin_account):
    identity.fail_update = "rate limited"
    svc = AuthService(db, identity)
    actor = CurrentUser(id=admin_account.id, email="admin@school.cz", role=Role.ADMIN)

    out = svc.update_profile(actor, UpdateProfileIn(first_name="X", last_name="Y", email="ada@school.cz"))
    assert out.success is False
    assert out.message == "Failed to update email: rate limited"
    profile = db.get(Profile, admin_account.id)
    assert (profile.first_name, profile.last_name, profile.email) == ("Ada", "Admin", "admin@school.cz")


def test_update_profile_same_email_skips_identity(db, identity, admin_account):
    identity.fail_update = "should not be called"
    actor = CurrentUser(id=admin_account.id, email="admin@school.cz", role=Role.ADMIN)
    out = AuthService(db, identity).update_profile(
        actor, UpdateProfileIn(first_name="Ada", last_name="L", email="admin@school.cz")
    )
    assert out.success is True


# ---------------- admins ----------------

def _new_admin(email="new@school.cz"):
    return CreateAdminIn(email=email, password="pw", first_name="New", last_name="Admin")


def test_create_and_list_admins(db, identity, admin_user):
    svc = AdminService(db, identity)
    out = svc.create_admin(_new_admin())
    assert out.success is True
    assert out.admin.role is Role.ADMIN
    assert {a.email for a in svc.list_admins().admins} == {"admin@school.cz", "new@school.cz"}


def test_create_admin_identity_failure(db, identity):
    identity.add_user("new@school.cz", "pw")
    with pytest.raises(ValidationFailed, match="Failed to create user"):
        AdminService(db, identity).create_admin(_new_admin())
    assert db.query(Profile).count() == 0


def test_delete_admin(db, identity, admin_user):
    other = AdminService(db, identity).create_admin(_new_admin()).admin
    out = AdminService(db, identity).delete_admin(admin_user, other.id)
    assert out.message == "Admin deleted successfully"
    assert "new@school.cz" not in identity.users
    assert db.get(Profile, other.id) is None


def test_delete_admin_rules(db, identity, admin_user):
    svc = AdminService(db, identity)
    with pytest.raises(InvalidState):
        svc.delete_admin(admin_user, admin_user.id)
    with pytest.raises(NotFound, match="Admin not found"):
        svc.delete_admin(admin_user, uuid.uuid4())


def test_delete_admin_when_auth_deletion_fails(db, identity, admin_user):
    other = AdminService(db, identity).create_admin(_new_admin()).admin
    identity.fail_delete = "down"
    out = AdminService(db, identity).delete_admin(admin_user, other.id)
    assert out.success is True
    assert out.message.startswith("Admin profile deleted, but auth credentials may still exist")
    assert db.get(Profile, other.id) is None
