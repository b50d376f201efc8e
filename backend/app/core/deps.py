from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.session import get_session

# Tokens come from the external identity provider; tokenUrl is informational.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_current_employee(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_session)],
):
    """Validate JWT and return the Employee ORM object."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        employee_id: str = payload.get("sub")
        if not employee_id:
            raise credentials_exc
    except JWTError:
        raise credentials_exc

    from app.models.employee import Employee

    employee = db.get(Employee, employee_id)
    if employee is None or not employee.is_active:
        raise credentials_exc
    return employee


def require_role(*roles: str):
    """Dependency factory: raises 403 if the employee's system role is not allowed."""
    def check(employee=Depends(get_current_employee)):
        if employee.system_role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{employee.system_role}' is not permitted for this action.",
            )
        return employee
    return check
