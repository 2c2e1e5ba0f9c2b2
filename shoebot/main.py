from __future__ import annotations

import os

import uvicorn


def dev() -> None:
    """Run the development server."""
    # create_app reads Settings from the environment on startup.
    uvicorn.run(
        "shoebot.app:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.getenv("LOG_LEVEL", "INFO").lower(),
    )


if __name__ == "__main__":
    dev()
