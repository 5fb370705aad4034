"""
ESSENCE Voice Legacy API entrypoint.

    uvicorn essence.main:app
"""

import uvicorn

from essence.app import create_app
from essence.core.config import get_settings

app = create_app()


def run():
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "essence.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
