# accounts/shared/me_api.py
from fastapi import APIRouter, Depends

from accounts.billing.entitlement import Entitlement
from accounts.sessions.claims import SessionClaims
from accounts.shared.auth import get_claims
from accounts.shared.guard import require_entitlement

router = APIRouter(prefix="/me", tags=["Me"])

@router.get("/session", response_model=SessionClaims)
def my_session(claims: SessionClaims = Depends(get_claims)):
    # informational; recomputed from storage on this request
    return claims

@router.get("/pro-check")
def my_pro_check(ent: Entitlement = Depends(require_entitlement)):
    return {"ok": True, "state": ent.state.value, "tier": ent.tier}
