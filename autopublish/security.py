from __future__ import annotations

import hmac

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from autopublish.errors import AutoPublishNotConfiguredError, UnauthorizedError
from autopublish.settings import get_auto_publish_token

bearer_scheme = HTTPBearer(auto_error=False)


def verify_shared_secret(presented: str | None, expected: str) -> bool:
    if not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_auto_publish_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    expected = get_auto_publish_token()
    if expected is None:
        raise AutoPublishNotConfiguredError()

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing bearer token.")
    if not verify_shared_secret(credentials.credentials, expected):
        raise UnauthorizedError()

    request.state.actor = "scheduler"
    request.state.actor_id = "auto_publish_trigger"
    return "auto_publish_trigger"
