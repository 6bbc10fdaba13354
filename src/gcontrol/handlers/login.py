"""Login notification handler (``/login``)."""

from functools import partial
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response
from pydantic import ValidationError
from safir.models import ErrorModel
from safir.slack.webhook import SlackRouteErrorHandler
from starlette.requests import ClientDisconnect

from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import PayloadError, SupervisorClosedError, SyncCapacityError
from ..models.login import LoginRequest

router = APIRouter(route_class=SlackRouteErrorHandler)

__all__ = ["router"]


def _parse_login(body: bytes) -> LoginRequest:
    """Parse the body of a login notification.

    Raises
    ------
    PayloadError
        Raised if the body is not a valid login notification.
    """
    try:
        return LoginRequest.model_validate_json(body)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(p) for p in error["loc"])
        if field:
            msg = f"Invalid login payload: {field}: {error['msg']}"
        else:
            msg = f"Invalid login payload: {error['msg']}"
        raise PayloadError(msg, field or None) from e


@router.post(
    "/login",
    description=(
        "Notify gcontrol that a user has logged in. The user's group"
        " memberships are resolved from every configured directory server"
        " in the background and the resulting Grafana grants applied. The"
        " response is sent before any directory server is contacted and does"
        " not reflect the outcome of the synchronization."
    ),
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": LoginRequest.model_json_schema()
                }
            },
            "required": True,
        }
    },
    response_class=Response,
    responses={
        400: {"description": "Invalid payload", "model": ErrorModel},
        503: {"description": "Too many pending logins", "model": ErrorModel},
    },
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Synchronize permissions for a login",
    tags=["login"],
)
async def post_login(
    *,
    request: Request,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> Response:
    try:
        body = await request.body()
    except ClientDisconnect as e:
        raise PayloadError("Client disconnected before sending body") from e
    login = _parse_login(body)
    context.rebind_logger(user=login.user)

    sync = context.factory.create_permission_sync()
    work = partial(sync.synchronize, login.to_credentials())
    try:
        context.supervisor.submit(f"sync {login.user}", work)
    except SupervisorClosedError as e:
        raise SyncCapacityError("gcontrol is shutting down") from e

    context.logger.info("Accepted login notification")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
