import uvicorn  # type: ignore

from app.core import config
from app.utils import get_logger

log = get_logger(__name__)

if __name__ == "__main__":
    reload = config.ENVIRONMENT == "development"
    log.info(f"Running server on {config.HOST}:{config.PORT} ({config.ENVIRONMENT}, auth={config.AUTH_PROVIDER})")
    uvicorn.run("app.main:app", reload=reload, host=config.HOST, port=config.PORT)
