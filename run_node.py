import uvicorn
import logging

from ballotbox.config import load_config

# Only show ERROR and CRITICAL from uvicorn; ballotbox.logger owns the console
uvicorn_loggers = [
    logging.getLogger("uvicorn"),
    logging.getLogger("uvicorn.error"),
    logging.getLogger("uvicorn.access"),
    logging.getLogger("uvicorn.asgi"),
]

for uvicorn_logger in uvicorn_loggers:
    uvicorn_logger.setLevel(logging.ERROR)
    # Remove handlers to prevent duplicate output
    uvicorn_logger.handlers = []


def main():
    # config.toml [rpc] host/port; BALLOTBOX_RPC_HOST/PORT override, .env supplies defaults
    config = load_config()
    config.validate()
    uvicorn.run(
        "ballotbox.node.main:create_app",
        factory=True,
        host=config.rpc.host,
        port=config.rpc.port,
        reload=False,
        access_log=False,
        log_config=None
    )


if __name__ == "__main__":
    main()
