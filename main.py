"""
routeflow entry point.

Usage:
    python main.py <route_id> ['{"id": 1}']

Issues one request through the default orchestrator and logs the payload
and the route's analytics.
"""

import asyncio
import json
import sys

from loguru import logger

from routeflow.services import OrchestrationError, close_orchestrator, get_orchestrator


async def main(argv: list[str]) -> int:
    """Run a single routed request."""
    orchestrator = get_orchestrator()
    try:
        if not argv:
            routes = ", ".join(sorted(orchestrator.get_registered_routes()))
            logger.info(f"Usage: main.py <route_id> [json-params]. Routes: {routes}")
            return 2

        route_id = argv[0]
        params = json.loads(argv[1]) if len(argv) > 1 else None
        logger.info(f"Requesting {route_id} with params: {params}")
        payload = await orchestrator.request(route_id, params)
        logger.info(f"Response: {payload}")
        return 0
    except OrchestrationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        logger.info(f"Analytics: {orchestrator.get_global_analytics().to_dict()}")
        await close_orchestrator()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
