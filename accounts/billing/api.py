# accounts/billing/api.py
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from accounts.billing.service import EntitlementEngine
from accounts.shared.db import get_clock, get_sessions
from accounts.shared.errors import StorageError
from accounts.shared.http import err, err_from

router = APIRouter(prefix="/subscription", tags=["Subscription"])

class CheckIn(BaseModel):
    email: str = ""

def get_engine(
    sessions: sessionmaker = Depends(get_sessions),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> EntitlementEngine:
    return EntitlementEngine(sessions, clock)

@router.post("/check")
def api_check(inb: CheckIn, engine: EntitlementEngine = Depends(get_engine)):
    if not inb.email:
        err("Email is required")
    try:
        status = engine.check_subscription(inb.email)
    except StorageError as e:
        err_from(e)
    return {"success": True, "data": status.model_dump(by_alias=True, mode="json")}
