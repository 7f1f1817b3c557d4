import logging

from fastapi import FastAPI

from cockpit.optimization_api import optimization_router
from cockpit.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Yield Cockpit", version="0.1.0")
app.include_router(optimization_router)
