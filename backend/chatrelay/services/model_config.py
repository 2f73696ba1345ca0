import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from .room_store import now_ms
from ..core.config import Settings
from ..db.models import UpstreamConfigModel
from ..schemas.model import BaseSettingsUpdate, ModelParameters

logger = logging.getLogger(__name__)


class ModelConfigService:
    """Versioned upstream settings; the newest row wins over the environment defaults."""

    def __init__(self, session_factory: async_sessionmaker, settings: Settings):
        self.session_factory = session_factory
        self.settings = settings

    def defaults(self) -> ModelParameters:
        return ModelParameters(
            version=0,
            api_key=self.settings.OPENAI_API_KEY,
            model=self.settings.OPENAI_API_MODEL,
            base_url=self.settings.OPENAI_API_BASE_URL,
            proxy=self.settings.HTTPS_PROXY,
            timeout_ms=self.settings.OPENAI_TIMEOUT_MS,
            system_message=self.settings.SYSTEM_MESSAGE,
            temperature=self.settings.TEMPERATURE
        )

    async def current(self) -> ModelParameters:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UpstreamConfigModel).order_by(UpstreamConfigModel.id.desc()).limit(1)
            )
            config = result.scalar_one_or_none()

        if not config:
            return self.defaults()
        return ModelParameters(
            version=config.id,
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            proxy=config.proxy,
            timeout_ms=config.timeout_ms,
            system_message=config.system_message,
            temperature=config.temperature
        )

    async def update(self, update: BaseSettingsUpdate) -> ModelParameters:
        base = await self.current()
        config = UpstreamConfigModel(
            api_key=update.api_key or base.api_key,
            model=update.api_model,
            base_url=update.api_base_url or base.base_url,
            proxy=update.https_proxy,
            timeout_ms=update.timeout_ms or base.timeout_ms,
            system_message=update.system_message if update.system_message is not None else base.system_message,
            temperature=update.temperature if update.temperature is not None else base.temperature,
            created_at=now_ms()
        )
        async with self.session_factory() as session:
            session.add(config)
            await session.commit()

        logger.info(f"Upstream settings updated to version {config.id} ({config.model})")
        return await self.current()
