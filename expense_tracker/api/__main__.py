"""Run the API server: ``python -m expense_tracker.api``."""

import uvicorn

from expense_tracker.config import get_settings


def main() -> None:
    settings = get_settings().app
    uvicorn.run(
        "expense_tracker.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug_mode,
    )


if __name__ == "__main__":
    main()
