"""Map component error lists onto HTTP responses."""

from collections.abc import Sequence
from typing import Any, NoReturn, Protocol

from fastapi import HTTPException, status

STATUS_BY_KIND = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_authenticated": status.HTTP_401_UNAUTHORIZED,
    "authorization": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "storage": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ComponentError(Protocol):
    code: str
    message: str
    field: str
    kind: str


def status_for(errors: Sequence[ComponentError]) -> int:
    if not errors:
        return status.HTTP_400_BAD_REQUEST
    return STATUS_BY_KIND.get(errors[0].kind, status.HTTP_400_BAD_REQUEST)


def raise_for_errors(errors: Sequence[ComponentError]) -> NoReturn:
    """
    Raise the HTTPException for a failed component call. The first error decides
    the status; authorization failures carry a generic message only.
    """
    code = status_for(errors)
    detail: dict[str, Any]
    if code == status.HTTP_403_FORBIDDEN:
        detail = {"message": "Access denied", "errors": [{"code": "ACCESS_DENIED"}]}
    else:
        detail = {
            "message": errors[0].message if errors else "Request failed",
            "errors": [{"code": e.code, "field": e.field, "message": e.message} for e in errors],
        }
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    raise HTTPException(status_code=code, detail=detail, headers=headers)
