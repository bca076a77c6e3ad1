"""Main entry point for the defect-manager server."""

import uvicorn

from defect_manager.server.config import get_settings


def run():
    """Run the server."""
    settings = get_settings()

    uvicorn.run(
        "defect_manager.server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
