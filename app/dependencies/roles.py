from fastapi import Depends, HTTPException
from app.models.user import User
from app.utils.token import get_current_user


def require_role(*roles: str):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied for this role")
        return current_user

    return checker


def require_admin(current_user: User = Depends(get_current_user)):
    if current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


require_customer = require_role("customer")
require_delivery_partner = require_role("delivery")
