"""
API Dependencies
Common dependencies for API endpoints
"""
from typing import Dict
from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from stockledger.core.security import verify_token
from stockledger.services.ledger_engine import InventoryLedger

# Security scheme
security = HTTPBearer()


class Operator(BaseModel):
    """Identity recorded on every ledger transaction"""
    id: str
    name: str

    @property
    def label(self) -> str:
        return self.name or self.id


def get_ledger(request: Request) -> InventoryLedger:
    """The application's ledger, built at startup"""
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger not initialised"
        )
    return ledger


async def get_current_operator(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Operator:
    """
    Operator identity from the bearer token's subject and name claims
    """
    payload = verify_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    subject = str(payload["sub"])
    return Operator(id=subject, name=str(payload.get("name") or subject))


def get_pagination_params(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of records to return")
) -> Dict[str, int]:
    """
    Common pagination parameters.
    """
    return {"skip": skip, "limit": limit}
