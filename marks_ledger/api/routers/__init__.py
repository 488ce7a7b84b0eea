"""API router package for endpoint composition."""

from .campaigns import api_create_campaigns_router
from .health import api_create_health_router
from .marks import api_create_marks_router
from .positions import api_create_positions_router
from .replay import api_create_replay_router

__all__ = [
	"api_create_campaigns_router",
	"api_create_health_router",
	"api_create_marks_router",
	"api_create_positions_router",
	"api_create_replay_router",
]
