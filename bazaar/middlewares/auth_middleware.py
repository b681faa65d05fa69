from typing import Iterable, Optional
from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from bazaar.common.utils import build_error, json_error
from bazaar.common.constants import request_id_ctx
from bazaar.user.dependencies import Authentication
from bazaar.user.repository import identity_from_claims, identity_from_session_token
from bazaar.middlewares.constants import logger


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Resolves the caller from the Authorization header onto request.state.

    `paths` are public and skipped entirely. On `maybe_auth_paths` a missing
    header is fine and the request continues anonymously; everywhere else it is a 401.
    """
    def __init__(self, app, *, session_maker, paths: Iterable[str], maybe_auth_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.session_maker = session_maker
        self.paths = tuple(paths)
        self.maybe_auth_paths = tuple(maybe_auth_paths or ())
        self.bearer = Authentication(auto_error=False)

    def _reject(self, message: str, status_code: int = status.HTTP_401_UNAUTHORIZED):
        payload = build_error(code="INVALID_AUTH", details={"message": message}, request_id=request_id_ctx.get())
        return json_error(payload, status_code=status_code, headers={"WWW-Authenticate": "Bearer"})

    async def dispatch(self, request: Request, call_next):

        path = request.url.path
        if request.method == "OPTIONS" or any(path.startswith(p) for p in self.paths):
            return await call_next(request)

        try:
            credential = await self.bearer(request)
        except HTTPException as e:
            logger.warning("auth.middleware.failed", extra={"reason": e.detail, "path": path, "method": request.method})
            return self._reject("Missing or Invalid Auth Headers")

        if credential is None:
            if any(path.startswith(p) for p in self.maybe_auth_paths):
                return await call_next(request)
            logger.info("auth.middleware.missing", extra={"path": path, "method": request.method})
            return self._reject("Missing or Invalid Auth Headers")

        async with self.session_maker() as session:
            if credential["kind"] == "access":
                identity = await identity_from_claims(session, credential["claims"])
            else:
                identity = await identity_from_session_token(session, credential["token"])

        if not identity:
            logger.warning("auth.middleware.session_invalid", extra={"path": path, "kind": credential["kind"]})
            return self._reject("Session expired or revoked")

        if credential["kind"] == "access" and credential["claims"].get("role_version") != identity["role_version"]:
            logger.info("auth.middleware.role_version_stale", extra={"user_public_id": identity["public_id"], "path": path})
            return self._reject("Role version mismatch, trigger re login")

        request.state.user_identifier = identity["user_id"]
        request.state.user_public_id = identity["public_id"]
        request.state.user_role = identity["role"]
        request.state.role_version = identity["role_version"]
        request.state.session_pid = identity["session_pid"]

        logger.debug("auth.middleware.success", extra={"user_public_id": identity["public_id"], "path": path})

        return await call_next(request)
