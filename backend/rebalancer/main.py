import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rebalancer.core.db import init_models
from rebalancer.services.performance_service import close_performance_service
from rebalancer.tasks.scheduler import scheduler
from .routers import fund_flows, performance

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="AAVE Rebalancer Performance API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(performance.router, prefix="/api")
    app.include_router(fund_flows.router, prefix="/api")

    @app.get("/")
    async def read_root():
        return {"message": "AAVE Rebalancer Performance API", "docs": "/docs"}

    @app.on_event("startup")
    async def startup_event() -> None:
        try:
            logger.info("正在初始化数据库...")
            await init_models()
            logger.info("数据库初始化完成")

            logger.info("正在启动定时任务...")
            await scheduler.start()
            logger.info("定时任务启动完成")

            logger.info("应用启动完成！")
        except Exception as e:
            logger.error(f"应用启动失败: {e}", exc_info=True)
            raise

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        try:
            logger.info("正在停止定时任务...")
            await scheduler.stop()
            logger.info("定时任务已停止")
        except Exception as e:
            logger.error(f"停止定时任务时出错: {e}", exc_info=True)

        try:
            await close_performance_service()
            logger.info("HTTP 客户端已关闭")
        except Exception as e:
            logger.error(f"关闭 HTTP 客户端时出错: {e}", exc_info=True)

    return app


app = create_app()
