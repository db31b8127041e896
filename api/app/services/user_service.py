"""
User Service

ユーザー登録・ログイン（bcrypt によるパスワード検証）
"""

from dataclasses import dataclass
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from lib.exceptions import GoalTrackerError, PersistenceError, ValidationError
from lib.logging import get_logger
from app.models import User

logger = get_logger(__name__)

# bcrypt は先頭72バイトまでしか扱えない
BCRYPT_MAX_BYTES = 72


@dataclass
class UserContext:
    """認証済みユーザーコンテキスト"""
    user_id: str
    email: str
    name: str


class InvalidCredentialsError(GoalTrackerError):
    """メールアドレスまたはパスワードが一致しない"""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, error_code="INVALID_CREDENTIALS")


def hash_password(password: str) -> str:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError("Password too long", field="password")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        # 保存されたハッシュが不正な形式
        return False


class UserService:
    """ユーザーサービス"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def register(self, name: str, email: str, password: str) -> User:
        """
        ユーザーを登録

        Raises:
            ValidationError: メールアドレスが登録済み
            PersistenceError: 書き込み失敗
        """
        password_hash = hash_password(password)

        try:
            with self._session_factory.begin() as session:
                existing = session.execute(
                    select(User.id).where(User.email == email)
                ).scalar_one_or_none()
                if existing is not None:
                    raise ValidationError(
                        "User already exists with this email",
                        field="email",
                    )

                user = User(name=name, email=email, password_hash=password_hash)
                session.add(user)
                session.flush()
        except IntegrityError:
            # 同時登録で一意制約に当たった場合
            raise ValidationError("User already exists with this email", field="email")
        except SQLAlchemyError as e:
            logger.error("Failed to register user", error=str(e))
            raise PersistenceError("Failed to register user", operation="register") from e

        return user

    def authenticate(self, email: str, password: str) -> User:
        """
        メールアドレスとパスワードで認証

        Raises:
            InvalidCredentialsError: ユーザーが存在しない、またはパスワード不一致
        """
        with self._session_factory() as session:
            user = session.execute(
                select(User).where(User.email == email)
            ).scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Login failed: invalid credentials")
            raise InvalidCredentialsError()

        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session_factory() as session:
            return session.get(User, user_id)
