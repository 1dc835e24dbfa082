import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from .database import Database

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- 앱 시작 ---
    logger.info("✅ FastAPI 앱이 시작됩니다.")

    database: Database = app.state.database
    await database.connect()
    await database.init_db()

    # --- 앱 종료 ---
    yield
    logger.info("✅ FastAPI 앱이 종료됩니다.")
    logger.info("✅ 데이터베이스 엔진 연결을 종료합니다.")
    await database.disconnect()
