import pytest

from app.core import decode_token, verify_password
from app.core.exceptions import ValidationError, AuthenticationError, ConflictError, NotFoundError
from app.database.models import User
from app.schemas import UserCreate, UserLogin, ProfileUpdate, RoleEnum, EmploymentTypeEnum
from app.services.auth_service import auth_service


@pytest.mark.asyncio
async def test_register_hashes_password_and_issues_token(db):
    result = await auth_service.register_user(
        UserCreate(name="Asha Rao", email="Asha@Example.com", password="secret123")
    )

    assert result["token_type"] == "bearer"
    assert result["user"]["email"] == "asha@example.com"
    assert "hashed_password" not in result["user"]
    assert result["user"]["is_verified"] is False

    stored = await User.find_one(User.email == "asha@example.com")
    assert stored.hashed_password != "secret123"
    assert verify_password("secret123", stored.hashed_password)

    payload = decode_token(result["access_token"])
    assert payload["sub"] == str(stored.id)
    assert payload["role"] == "user"


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(db):
    await auth_service.register_user(UserCreate(name="A", email="dup@example.com", password="secret123"))
    with pytest.raises(ValidationError) as exc:
        await auth_service.register_user(UserCreate(name="B", email="DUP@example.com", password="secret456"))
    assert exc.value.message == "User already exists"


@pytest.mark.asyncio
async def test_login(db):
    await auth_service.register_user(UserCreate(name="A", email="login@example.com", password="secret123"))

    result = await auth_service.login_user(UserLogin(email="login@example.com", password="secret123"))
    assert result["user"]["email"] == "login@example.com"

    for password in ("wrong-pass", ""):
        with pytest.raises(AuthenticationError) as exc:
            await auth_service.login_user(UserLogin(email="login@example.com", password=password))
        assert exc.value.message == "Invalid email or password"

    with pytest.raises(AuthenticationError):
        await auth_service.login_user(UserLogin(email="nobody@example.com", password="secret123"))


@pytest.mark.asyncio
async def test_get_user_by_id_tolerates_bad_ids(borrower):
    assert (await auth_service.get_user_by_id(str(borrower.id))).id == borrower.id
    assert await auth_service.get_user_by_id("garbage") is None
    assert await auth_service.get_user_by_id("64b7f0c2a1b2c3d4e5f60718") is None


@pytest.mark.asyncio
async def test_update_profile(borrower):
    user = await auth_service.update_profile(borrower, ProfileUpdate(
        phone="9876543210",
        annual_income=600000,
        employment_type=EmploymentTypeEnum.freelancer,
    ))
    assert user.phone == "9876543210"

    stored = await User.get(borrower.id)
    assert stored.annual_income == 600000
    assert stored.employment_type == EmploymentTypeEnum.freelancer
    assert stored.name == "Borrower"


@pytest.mark.asyncio
async def test_make_admin(borrower, admin):
    promoted = await auth_service.make_admin(str(borrower.id))
    assert promoted.role == RoleEnum.admin

    with pytest.raises(ConflictError):
        await auth_service.make_admin(str(admin.id))
    with pytest.raises(NotFoundError):
        await auth_service.make_admin("64b7f0c2a1b2c3d4e5f60718")
