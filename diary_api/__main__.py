"""Main entry point for running the diary API server."""

import uvicorn

from diary_api.config.settings import AppConfig
from diary_api.server import create_app
from diary_api.utils.logging import configure_logging

if __name__ == "__main__":
    config = AppConfig.from_env()
    configure_logging(config.logging.log_level)

    ok, errors = config.validate()
    if not ok:
        raise SystemExit("설정 오류: " + "; ".join(errors))

    print(f"Starting diary API server on {config.host}:{config.port}...")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)
