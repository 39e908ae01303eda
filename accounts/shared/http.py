from fastapi import HTTPException
from typing import Any, Optional

from accounts.shared import errors

_STATUS = [
    (errors.AuthenticationError, 401),
    (errors.RegistrationError, 400),
    (errors.TokenError, 400),
    (errors.UserNotFound, 404),
    (errors.CreationConflict, 409),
    (errors.LinkageConflict, 409),
    (errors.StorageError, 503),
]

def ok(data: Any = None, **extra):
    return {"ok": True, "data": data, **extra}

def err(message: str, code: str = "bad_request", status: int = 400, details: Optional[Any] = None):
    # raise OR return; pick one style. I prefer raising to short-circuit.
    raise HTTPException(status_code=status, detail={"ok": False, "error": {"code": code, "message": message, "details": details}})

def err_from(exc: errors.AccountsError):
    status = next((s for cls, s in _STATUS if isinstance(exc, cls)), 400)
    details = {"retryable": True} if exc.retryable else None
    err(exc.message, code=exc.code, status=status, details=details)
