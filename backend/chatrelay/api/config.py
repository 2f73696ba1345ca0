# chatrelay/api/config.py
from fastapi import APIRouter, Depends

from .deps import get_model_config_service, require_root
from ..core.config import Settings, get_settings
from ..schemas.chat import Envelope
from ..schemas.model import BaseSettingsUpdate, ModelConfigView
from ..services.model_config import ModelConfigService

router = APIRouter()


@router.post("/session")
async def session(
        service: ModelConfigService = Depends(get_model_config_service),
        settings: Settings = Depends(get_settings)
) -> Envelope:
    params = await service.current()
    return Envelope.success({"auth": bool(settings.AUTH_SERVICE_URL), "model": params.model})


@router.post("/config")
async def get_config(
        _: str = Depends(require_root),
        service: ModelConfigService = Depends(get_model_config_service)
) -> Envelope:
    params = await service.current()
    return Envelope.success(ModelConfigView.from_parameters(params))


@router.post("/setting-base")
async def save_base_settings(
        update: BaseSettingsUpdate,
        _: str = Depends(require_root),
        service: ModelConfigService = Depends(get_model_config_service)
) -> Envelope:
    params = await service.update(update)
    return Envelope.success(ModelConfigView.from_parameters(params), message="Successfully")
