import uvicorn

from opgl_gateway.config import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "opgl_gateway.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
