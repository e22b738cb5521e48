from fastapi import Depends, HTTPException

from timeledger.core.roles import Caller, Role
from timeledger.deps.auth import require_auth


def require_role(role: Role):
    def dependency(caller: Caller = Depends(require_auth)) -> Caller:
        if not caller.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return caller

    return dependency
