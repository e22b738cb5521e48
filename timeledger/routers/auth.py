from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from timeledger.core import config
from timeledger.core.roles import Role
from timeledger.services.auth_service import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


class TokenRequest(BaseModel):
    user_id: str
    company_id: int
    role: Literal["EMPLOYEE", "MANAGER", "ADMIN"] = "EMPLOYEE"


@router.post("/token")
def issue_token(payload: TokenRequest):
    if config.env_name() not in {"dev", "local", "test"}:
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        token = create_access_token(
            user_id=str(payload.user_id),
            company_id=int(payload.company_id),
            role=Role(payload.role),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "access_token": token,
        "token_type": "bearer",
    }
