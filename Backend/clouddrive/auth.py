from datetime import timedelta
from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import models
from .config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from .database import get_db
from .errors import Unauthenticated
from .store import MetadataStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)

DBDep = Annotated[Session, Depends(get_db)]


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    expire = models.utcnow() + timedelta(
        minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES
    )
    return jwt.encode({"sub": str(user_id), "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_user_id(token: str) -> int:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise Unauthenticated("Token has no subject")
        return int(sub)
    except (JWTError, ValueError) as exc:
        raise Unauthenticated("Could not validate credentials") from exc


def get_current_user(
    db: DBDep,
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> models.User:
    if not token:
        raise Unauthenticated("Not authenticated")
    user = MetadataStore(db).get_user(decode_user_id(token))
    if user is None:
        raise Unauthenticated("Unknown user")
    return user
