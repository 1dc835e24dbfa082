import logging
from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import AsyncGenerator

logger = logging.getLogger(__name__)

Base = declarative_base()

class Database:
    """
    비동기 DB 엔진/세션 팩토리 소유자
    앱(create_app)이 하나를 만들고 lifespan에서 connect/disconnect를 호출함
    """
    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.echo = echo
        self.engine_kwargs = engine_kwargs
        self._engine: AsyncEngine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database.connect()가 호출되지 않았습니다.")
        return self._engine

    async def connect(self):
        if self._engine is not None:
            return

        self._engine = create_async_engine(self.url, echo=self.echo, **self.engine_kwargs)
        self._session_factory = sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("✅ 데이터베이스 엔진이 연결되었습니다.")

    async def disconnect(self):
        if self._engine is None:
            return

        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("✅ 데이터베이스 엔진이 종료되었습니다.")

    async def init_db(self):
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("✅ 데이터베이스 테이블이 성공적으로 생성되었습니다.")
        except Exception as e:
            logger.error(f"⛔ 데이터베이스 테이블을 생성하는 중 오류가 발생했습니다: {e}")
            raise

    def session(self) -> AsyncSession:
        if self._session_factory is None:
            raise RuntimeError("Database.connect()가 호출되지 않았습니다.")
        return self._session_factory()

async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
