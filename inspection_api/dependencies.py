"""
Request-scoped dependencies: the workflow and the authenticated actor.

The actor comes from a bearer JWT.  ``sub`` is the user id and ``roles``
the role list; the workflow trusts both as already authenticated.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from inspection_kernel.domain.authorization import ActorContext
from inspection_kernel.logging_config import LogContext
from inspection_services.workflow import InspectionWorkflow

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_workflow(request: Request) -> InspectionWorkflow:
    return request.app.state.workflow


def decode_actor(token: str, secret_key: str, algorithm: str) -> ActorContext:
    """Verify ``token`` and build the actor from its claims."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        raise _unauthorized("Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Could not validate credentials")
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise _unauthorized("Could not validate credentials")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return ActorContext.of(user_id, roles)


def get_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> ActorContext:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    settings = request.app.state.config.api
    actor = decode_actor(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm,
    )
    LogContext.set(actor_id=str(actor.user_id))
    return actor
