"""FastAPI application exposing Slack private API calls over a browser session."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .auth.captcha import CaptchaSolverFactory
from .auth.providers.slack import SlackLoginFlowController
from .auth.twofa import GmailInboxPoller
from .config import settings
from .exceptions import ConfigurationError
from .models import (
    ApiStatusResponse,
    ChannelsResponse,
    DeleteMessageRequest,
    ErrorResponse,
    HealthResponse,
    PostMessageRequest,
)
from .slack_api import SlackApi, SlackApiFactory
from .slack_api.client import DEFAULT_CONVERSATION_TYPES
from .storage import StorageFactory

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ENDPOINTS = {
    "health": "GET /health",
    "userBoot": "GET /api/slack/user-boot",
    "recentMessages": "GET /api/slack/recent-messages",
    "channels": "GET /api/slack/channels",
    "conversations": "GET /api/slack/conversations",
    "conversationHistory": "GET /api/slack/conversations/:channelId/history",
    "conversationReplies": "GET /api/slack/conversations/:channelId/replies/:timestamp",
    "postMessage": "POST /api/slack/messages",
    "deleteMessage": "DELETE /api/slack/messages",
}


def build_login_controller() -> Optional[SlackLoginFlowController]:
    """Email login is only wired when SLACK_LOGIN_EMAIL is set."""
    if not settings.slack_login_email:
        return None

    # Gmail client settings are checked when the consent flow actually runs.
    settings.validate_required("slack_workspace_name", context="email login")
    try:
        solver = CaptchaSolverFactory.create_solver()
    except ConfigurationError as e:
        logger.warning(f"⚠️ CAPTCHA solving disabled: {e}")
        solver = None

    return SlackLoginFlowController(
        inbox_poller=GmailInboxPoller(poll_interval_seconds=settings.gmail_poll_interval_seconds),
        challenge_solver=solver,
    )


def build_slack_api_factory() -> SlackApiFactory:
    settings.validate_required("slack_team_id", context="Slack workspace URL")
    return SlackApiFactory(
        cookies_loader=StorageFactory.create_cookies_loader(),
        workspace_url=settings.workspace_url,
        login_controller=build_login_controller(),
        login_email=settings.slack_login_email or None,
        workspace_name=settings.slack_workspace_name or None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🔄 Initializing Slack API...")
    try:
        app.state.slack_api = await build_slack_api_factory().create_slack_api()
    except Exception as e:
        logger.error(f"❌ Failed to initialize Slack API: {e}")
        raise
    logger.info("✅ Slack API initialized successfully")
    logger.info(f"📱 Available API endpoints: {list(ENDPOINTS.values())}")

    yield

    app.state.slack_api = None
    logger.info("🔌 Slack API session released")


# Create FastAPI app
app = FastAPI(
    title="Slack Session API",
    description="Slack private API access through a captured browser session",
    version="0.1.0",
    lifespan=lifespan,
)


def get_slack_api(request: Request) -> SlackApi:
    slack_api = getattr(request.app.state, "slack_api", None)
    if slack_api is None:
        raise HTTPException(status_code=503, detail="Slack API is not ready")
    return slack_api


def get_workspace_url() -> str:
    return settings.workspace_url


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure(message: str, error: Exception) -> JSONResponse:
    logger.error(f"{message}: {error}")
    return JSONResponse(status_code=500, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    issues = [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation Error",
            "message": "Request doesn't match the schema",
            "statusCode": 400,
            "details": {
                "issues": jsonable_encoder(issues),
                "method": request.method,
                "url": str(request.url),
            },
        },
    )


@app.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Health check."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        slackApiReady=getattr(request.app.state, "slack_api", None) is not None,
    )


@app.get("/api/status", response_model=ApiStatusResponse)
async def api_status():
    """API status with all endpoints."""
    return ApiStatusResponse(status="ready", timestamp=_now(), endpoints=ENDPOINTS)


@app.get("/api/slack/user-boot")
async def user_boot(
    slack_api: SlackApi = Depends(get_slack_api),
    workspace_url: str = Depends(get_workspace_url),
):
    try:
        return await slack_api.client_user_boot(workspace_url)
    except Exception as e:
        return _failure("Failed to get user boot data", e)


@app.get("/api/slack/recent-messages")
async def recent_messages(
    slack_api: SlackApi = Depends(get_slack_api),
    workspace_url: str = Depends(get_workspace_url),
):
    try:
        return await slack_api.get_recent_messages(workspace_url)
    except Exception as e:
        return _failure("Failed to get recent messages", e)


@app.get("/api/slack/channels")
async def channels(
    slack_api: SlackApi = Depends(get_slack_api),
    workspace_url: str = Depends(get_workspace_url),
):
    """Channels the user can access, from the boot data."""
    try:
        boot = await slack_api.client_user_boot(workspace_url)
    except Exception as e:
        return _failure("Failed to get channels list", e)
    channel_list = boot.get("channels") or []
    return ChannelsResponse(channels=channel_list, count=len(channel_list))


@app.get("/api/slack/conversations")
async def conversations(
    types: str = Query(DEFAULT_CONVERSATION_TYPES),
    slack_api: SlackApi = Depends(get_slack_api),
):
    try:
        return await slack_api.get_conversations_list(types)
    except Exception as e:
        return _failure("Failed to get conversations list", e)


@app.get("/api/slack/conversations/{channelId}/history")
async def conversation_history(
    channel_id: str = Path(..., alias="channelId", min_length=1),
    oldest: Optional[str] = None,
    latest: Optional[str] = None,
    limit: Optional[int] = Query(None, gt=0, le=1000),
    inclusive: Optional[bool] = None,
    ignore_replies: Optional[bool] = None,
    include_pin_count: Optional[bool] = None,
    no_user_profile: Optional[bool] = None,
    include_stories: Optional[bool] = None,
    include_free_team_extra_messages: Optional[bool] = None,
    include_date_joined: Optional[bool] = None,
    slack_api: SlackApi = Depends(get_slack_api),
):
    extra: Dict[str, Any] = {
        "ignore_replies": ignore_replies,
        "include_pin_count": include_pin_count,
        "no_user_profile": no_user_profile,
        "include_stories": include_stories,
        "include_free_team_extra_messages": include_free_team_extra_messages,
        "include_date_joined": include_date_joined,
    }
    try:
        return await slack_api.get_conversation_history(
            channel_id,
            oldest=oldest,
            latest=latest,
            limit=limit or 100,
            inclusive=inclusive,
            **{key: value for key, value in extra.items() if value is not None},
        )
    except Exception as e:
        return _failure("Failed to get conversation history", e)


@app.get("/api/slack/conversations/{channelId}/replies/{timestamp}")
async def conversation_replies(
    channel_id: str = Path(..., alias="channelId", min_length=1),
    timestamp: str = Path(..., min_length=1),
    oldest: Optional[str] = None,
    latest: Optional[str] = None,
    limit: Optional[int] = Query(None, gt=0, le=1000),
    inclusive: Optional[bool] = None,
    slack_api: SlackApi = Depends(get_slack_api),
):
    try:
        return await slack_api.get_conversation_replies(
            channel_id,
            timestamp,
            oldest=oldest,
            latest=latest,
            limit=limit,
            inclusive=inclusive,
        )
    except Exception as e:
        return _failure("Failed to get conversation replies", e)


@app.post("/api/slack/messages")
async def post_message(
    body: PostMessageRequest,
    slack_api: SlackApi = Depends(get_slack_api),
):
    options = body.model_dump(exclude_none=True, by_alias=True)
    try:
        return await slack_api.post_message(**options)
    except Exception as e:
        return _failure("Failed to post message", e)


@app.delete("/api/slack/messages")
async def delete_message(
    body: DeleteMessageRequest,
    slack_api: SlackApi = Depends(get_slack_api),
):
    try:
        return await slack_api.delete_message(body.channel, body.ts)
    except Exception as e:
        return _failure("Failed to delete message", e)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
