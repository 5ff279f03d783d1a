import uvicorn

from tiny_faucet.core.app_factory import create_app
from tiny_faucet.core.config import settings

app = create_app()


def run() -> None:
    """Console entrypoint: serve the app with uvicorn."""
    uvicorn.run(
        "tiny_faucet.main:app",
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
        reload=settings.app.debug,
    )


if __name__ == "__main__":
    run()
