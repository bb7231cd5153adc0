"""Entry point for running the API with uvicorn."""

import logging

import uvicorn

from hr_payroll.config import settings


def main() -> None:
    """Run the application."""
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(
        "hr_payroll.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
