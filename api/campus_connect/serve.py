import uvicorn

from campus_connect.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "campus_connect.main:app",
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=int(settings.shutdown_grace_seconds),
        log_config=None,
    )


if __name__ == "__main__":
    main()
