import logging
import logging.config
import sys

import uvicorn

from shift_engine.server import create_app
from shift_engine.server_url import parse_server_url
from shift_engine.vars import SERVER_URL, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


def main() -> int:
    logging.config.dictConfig(uvicorn.config.LOGGING_CONFIG)
    server_url = parse_server_url(SERVER_URL)
    application = create_app(server_url=server_url)

    config = uvicorn.Config(
        application,
        host=server_url.host,
        port=server_url.port,
        server_header=False,
        proxy_headers=True,
    )
    server = uvicorn.Server(config)

    def stop_listener():
        server.should_exit = True

    sentinel = application.app.state.sentinel
    sentinel.stop_listener = stop_listener

    logger.info(f"{SERVICE_NAME} is listening on port {server_url.port}.")
    server.run()
    return sentinel.exit_code if sentinel.exit_code is not None else 0


if __name__ == "__main__":
    sys.exit(main())
