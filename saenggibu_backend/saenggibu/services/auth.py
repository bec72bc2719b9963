from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import structlog

from saenggibu.core.database import get_db
from saenggibu.core.errors import Unauthorized
from saenggibu.core.security import create_access_token, decode_access_token, hash_password, verify_password
from saenggibu.models.user import User
from saenggibu.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

logger = structlog.get_logger(__name__)

_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _issue_token(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        user_id=user.id,
        display_name=user.display_name,
    )


def _find_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def register_user(db: Session, payload: RegisterRequest) -> TokenResponse:
    if _find_by_email(db, payload.email):
        raise HTTPException(status_code=400, detail="이미 등록된 이메일입니다.")
    consultant = User(
        email=payload.email.strip().lower(),
        hashed_password=hash_password(payload.password),
        display_name=payload.display_name,
    )
    db.add(consultant)
    db.commit()
    db.refresh(consultant)
    logger.info("consultant_registered", user_id=consultant.id)
    return _issue_token(consultant)


def login_user(db: Session, payload: LoginRequest) -> TokenResponse:
    consultant = _find_by_email(db, payload.email)
    if consultant is None or not verify_password(payload.password, consultant.hashed_password):
        logger.info("login_rejected")
        raise HTTPException(status_code=401, detail="이메일 또는 비밀번호가 올바르지 않습니다.")
    return _issue_token(consultant)


def get_current_user(
    token: str | None = Depends(_oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a consultant account; every /api route except auth needs it."""
    if not token:
        raise Unauthorized("인증이 필요합니다.")
    user_id = decode_access_token(token)
    if user_id is None:
        raise Unauthorized("유효하지 않은 토큰입니다.")
    consultant = db.get(User, user_id)
    if consultant is None:
        raise Unauthorized("사용자를 찾을 수 없습니다.")
    return consultant
