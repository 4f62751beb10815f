import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .database import get_db
from .errors import Unauthenticated
from .models import User

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller forwarded by the gateway.

    Token verification happens upstream; this service only trusts the verified
    user id header and loads the role from the user record.
    """
    if not x_user_id:
        raise Unauthenticated("Missing X-User-Id header")

    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning(f"❌ Malformed X-User-Id header: {x_user_id!r}")
        raise Unauthenticated("Invalid X-User-Id header")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.warning(f"❌ Unknown user id in X-User-Id header: {user_id}")
        raise Unauthenticated("Unknown user")

    return user
