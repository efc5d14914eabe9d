import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from actions import SignalingService
from errors import SignalingError
from schemas.signaling import SignalingRequest
from logging_config import get_logger

logger = get_logger(__name__)

signaling_router = APIRouter(prefix="/signaling", tags=["signaling"])


def get_signaling_service(request: Request) -> SignalingService:
    return request.app.state.signaling_service


def failure(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": message})


async def dispatch(service: SignalingService, signaling_request: SignalingRequest, client_host: str):
    logger.info(f"Signaling request from {client_host}: action={signaling_request.action}, room={signaling_request.room_id}, player={signaling_request.player_id}")
    try:
        result = await service.handle(signaling_request)
    except SignalingError as e:
        logger.warning(f"Signaling action {signaling_request.action} failed for room {signaling_request.room_id}: {e.message}")
        return failure(e.message)
    except Exception as e:
        logger.error(f"Error handling action {signaling_request.action} for room {signaling_request.room_id}: {e}", exc_info=True)
        return failure(str(e))
    logger.debug(f"Operation result: {result}")
    return {"success": True, **result}


@signaling_router.get("")
async def signaling_query(
    request: Request,
    action: Optional[str] = Query(None),
    roomId: Optional[str] = Query(None),
    playerId: Optional[str] = Query(None),
    service: SignalingService = Depends(get_signaling_service),
):
    # Read-style calls such as poll_notifications only carry these three fields
    signaling_request = SignalingRequest(action=action, room_id=roomId, player_id=playerId)
    return await dispatch(service, signaling_request, _client_host(request))


@signaling_router.post("")
async def signaling_body(request: Request, service: SignalingService = Depends(get_signaling_service)):
    try:
        body = await request.json()
        signaling_request = SignalingRequest.model_validate(body)
    except json.JSONDecodeError:
        logger.warning(f"Rejected request from {_client_host(request)}: body is not valid JSON")
        return failure("Request body must be valid JSON")
    except ValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"]) or "body"
        logger.warning(f"Rejected request from {_client_host(request)}: {location}: {error['msg']}")
        return failure(f"Invalid request field {location}: {error['msg']}")
    return await dispatch(service, signaling_request, _client_host(request))


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"
