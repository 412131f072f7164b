from app.database.models import User
from app.schemas import UserCreate, UserLogin, ProfileUpdate, RoleEnum
from app.core import hash_password, verify_password, create_access_token, is_valid_password
from app.core.exceptions import ValidationError, AuthenticationError, NotFoundError, ConflictError, LoanAppError
from app.helpers.response_builder import build_user_response, parse_object_id
from typing import Dict, List, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class AuthService:
    # Register a new user with email and password validation
    @staticmethod
    async def register_user(user_data: UserCreate) -> Dict:
        email = user_data.email.lower()
        existing_user = await User.find_one(User.email == email)

        if existing_user:
            raise ValidationError("User already exists")

        if not is_valid_password(user_data.password):
            raise ValidationError("Password must be at least 6 characters long")

        try:
            hashed_password = hash_password(user_data.password)
        except ValueError:
            logger.warning("Password hashing failed")
            raise ValidationError("Invalid password format")

        new_user = User(
            name=user_data.name,
            email=email,
            hashed_password=hashed_password,
            created_at=datetime.utcnow()
        )

        await new_user.insert()
        logger.info("User registered with ID: %s", new_user.id)

        return AuthService._token_response(new_user)

    # Authenticate user and generate access token
    @staticmethod
    async def login_user(form_data: UserLogin) -> Dict:
        user = await User.find_one(User.email == form_data.email.lower())

        if not user or not verify_password(form_data.password, user.hashed_password):
            logger.warning("Failed login for email: %s", form_data.email)
            raise AuthenticationError("Invalid email or password")

        return AuthService._token_response(user)

    @staticmethod
    def _token_response(user: User) -> Dict:
        try:
            access_token = create_access_token(data={"sub": str(user.id), "role": user.role.value})
        except ValueError as e:
            logger.error("Token creation failed: %s", e)
            raise LoanAppError("Could not create access token")
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "user": build_user_response(user),
        }

    # Retrieve a user by id, or None when the id is unknown or malformed
    @staticmethod
    async def get_user_by_id(user_id: str) -> Optional[User]:
        try:
            oid = parse_object_id(user_id, "User")
        except NotFoundError:
            return None
        return await User.get(oid)

    @staticmethod
    async def update_profile(user: User, profile: ProfileUpdate) -> User:
        changes = profile.model_dump(exclude_none=True)
        for field, value in changes.items():
            if value == "" and field != "employment_type":
                continue
            setattr(user, field, value)
        await user.save()
        logger.info("Profile updated for user %s (%s)", user.id, ", ".join(sorted(changes)) or "no fields")
        return user

    @staticmethod
    async def list_users() -> List[User]:
        return await User.find_all().sort("-created_at").to_list()

    @staticmethod
    async def make_admin(user_id: str) -> User:
        user = await User.get(parse_object_id(user_id, "User"))
        if not user:
            raise NotFoundError("User not found")
        if user.is_admin:
            raise ConflictError("User is already an admin")
        user.role = RoleEnum.admin
        await user.save()
        logger.info("User %s promoted to admin", user.id)
        return user

auth_service = AuthService()
