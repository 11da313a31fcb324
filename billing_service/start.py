import os

import uvicorn

from billing_service.config.logger_config import log


def main():
    app_host = os.getenv("APP_HOST", "0.0.0.0")
    app_port = int(os.getenv("APP_PORT", "8000"))
    log.info("Starting billing-service on {}:{}", app_host, app_port)
    uvicorn.run("billing_service.main:app", host=app_host, port=app_port)


if __name__ == "__main__":
    main()
