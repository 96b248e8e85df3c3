#!/usr/bin/env python3
"""
MediGuard 订单服务入口
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from config.settings import API_CONFIG
from api.middleware.exception_handler import setup_exception_handlers
from api.routes import health_routes, medication_routes, order_routes
from core.database.connection import db_manager
from core.orders.order_workflow import shutdown_order_workflow

logging.basicConfig(
    level=API_CONFIG["log_level"],
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_manager.initialize()
    logger.info("🚀 订单服务已启动")
    yield
    shutdown_order_workflow()
    logger.info("订单服务已停止")


def create_app() -> FastAPI:
    app = FastAPI(
        title="MediGuard Order Service",
        version="1.0.0",
        lifespan=lifespan
    )
    setup_exception_handlers(app)
    app.include_router(order_routes.router)
    app.include_router(medication_routes.router)
    app.include_router(health_routes.router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=API_CONFIG["host"],
        port=API_CONFIG["port"],
        workers=API_CONFIG["workers"],
        log_level=API_CONFIG["log_level"].lower()
    )
