import logging
from fastapi import Depends

from accounts.billing.entitlement import Entitlement
from accounts.sessions.issuer import SessionIssuer
from accounts.shared.auth import current_subject, get_issuer
from accounts.shared.errors import StorageError
from accounts.shared.http import err, err_from

log = logging.getLogger(__name__)

def require_entitlement(
    user_id: int = Depends(current_subject),
    issuer: SessionIssuer = Depends(get_issuer),
) -> Entitlement:
    """
    Use as a FastAPI dependency on paid-tier endpoints.
    Re-evaluates entitlement from storage for the bearer's subject; session
    claims are never consulted. Storage trouble denies access.
    """
    try:
        found = issuer.engine.entitlement_for(user_id)
    except StorageError as e:
        err_from(e)
    if found is None:
        err("Invalid or expired session", code="invalid_session", status=401)
    _, ent = found
    if not ent.entitled:
        log.info("paid-tier access refused for user %s (%s)", user_id, ent.state.value)
        err("An active subscription is required", code="subscription_required", status=402,
            details={"state": ent.state.value})
    return ent
