"""
Default route table for the coaching app's backend and AI endpoints.
"""

from datetime import timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from routeflow.services.client import RouteOrchestrator


DEFAULT_ROUTES: dict[str, dict[str, Any]] = {
    # Authentication
    "auth.login": {
        "url": "/auth/login",
        "method": "POST",
        "priority": "critical",
        "timeout": timedelta(seconds=10),
        "retry": {"attempts": 2},
    },
    "auth.register": {
        "url": "/auth/register",
        "method": "POST",
        "priority": "high",
        "timeout": timedelta(seconds=10),
        "retry": {"attempts": 1},
    },
    "auth.refresh": {
        "url": "/auth/refresh",
        "method": "POST",
        "priority": "high",
        "retry": {"attempts": 1},
    },
    # User profile
    "user.profile": {
        "url": "/user/profile",
        "method": "GET",
        "cache": {"strategy": "session"},
        "aiOptimization": {"enabled": True, "adaptiveTimeouts": True},
    },
    "user.updateProfile": {
        "url": "/user/profile",
        "method": "PUT",
        "priority": "high",
        "retry": {"attempts": 1},
    },
    # AI services
    "ai.assessment": {
        "url": "/ai/assessment",
        "method": "POST",
        "priority": "high",
        "timeout": timedelta(seconds=20),
        "retry": {"attempts": 1},
        "circuitBreaker": {"enabled": True, "failureThreshold": 5},
        "aiOptimization": {"enabled": True, "responseAnalysis": True},
    },
    "ai.insights": {
        "url": "/ai/insights",
        "method": "POST",
        "cache": {"strategy": "memory"},
        "circuitBreaker": {"enabled": True, "failureThreshold": 5},
        "aiOptimization": {"enabled": True, "intelligentCaching": True},
    },
    "ai.learningPath": {
        "url": "/ai/learning-path",
        "method": "POST",
        "timeout": timedelta(seconds=15),
        "circuitBreaker": {"enabled": True, "failureThreshold": 5},
        "aiOptimization": {"enabled": True, "adaptiveTimeouts": True},
    },
    # Content
    "content.practices": {
        "url": "/content/practices",
        "method": "GET",
        "cache": {"strategy": "persistent"},
        "aiOptimization": {"enabled": True, "predictivePreloading": True},
    },
    "progress.tracking": {
        "url": "/progress/tracking",
        "method": "GET",
        "cache": {"strategy": "session"},
        "aiOptimization": {"enabled": True, "adaptiveTimeouts": True},
    },
}


def register_default_routes(orchestrator: "RouteOrchestrator") -> None:
    """Register every route of DEFAULT_ROUTES that is not registered yet."""
    registered = orchestrator.get_registered_routes()
    for route_id, config in DEFAULT_ROUTES.items():
        if route_id not in registered:
            orchestrator.register_route(route_id, config)
