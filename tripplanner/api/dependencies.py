import logging
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from pymongo.errors import PyMongoError

from tripplanner.core.chat_assistant import ChatAssistant
from tripplanner.core.repository import (
    MongoDBRepo,
    RepositoryUnavailable,
    get_repo,
    make_guidance_fetcher,
    make_location_lookup,
)
from tripplanner.core.schemas import Location, TravelGuidance

logger = logging.getLogger(__name__)


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity from the X-User-Id header set by the auth proxy."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()


def get_optional_repo(request: Request) -> Optional[MongoDBRepo]:
    """The repository, or None when it is not configured. Honors overrides of get_repo."""
    repo_factory = request.app.dependency_overrides.get(get_repo, get_repo)
    try:
        return repo_factory()
    except (RepositoryUnavailable, PyMongoError) as e:
        logger.warning(f"Location store unavailable, continuing without it: {e}")
        return None


def get_location_lookup(
    repo: Optional[MongoDBRepo] = Depends(get_optional_repo),
) -> Optional[Callable[[str], Optional[Location]]]:
    if repo is None:
        return None
    return make_location_lookup(repo)


def get_guidance_fetcher(
    repo: Optional[MongoDBRepo] = Depends(get_optional_repo),
) -> Optional[Callable[[], list[TravelGuidance]]]:
    if repo is None:
        return None
    return make_guidance_fetcher(repo)


def get_chat_assistant() -> ChatAssistant:
    try:
        return ChatAssistant()
    except RuntimeError as e:
        logger.error(f"Chat assistant unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat assistant is not available",
        )
