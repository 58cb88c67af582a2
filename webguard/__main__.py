"""Run the host app with uvicorn: ``python -m webguard``."""

import uvicorn

from webguard.config.loader import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "webguard.main:app",
        host="0.0.0.0",
        port=settings.listen_port,
        log_config=None,
        server_header=False,
    )


if __name__ == "__main__":
    main()
