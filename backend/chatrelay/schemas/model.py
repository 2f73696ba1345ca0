# chatrelay/schemas/model.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.case_utils import to_camel


class ModelParameters(BaseModel):
    """Upstream settings in effect for one request.

    Instances are immutable; a settings change produces a new version
    instead of mutating the one a running request holds.
    """
    model_config = ConfigDict(frozen=True)

    version: int = 0
    api_key: Optional[str] = None
    model: str
    base_url: str
    proxy: Optional[str] = None
    timeout_ms: int
    system_message: Optional[str] = None
    temperature: float = Field(0.8, ge=0, le=2)

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000


class BaseSettingsUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_key: Optional[str] = None
    api_model: str
    api_base_url: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0)
    https_proxy: Optional[str] = None
    system_message: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)


class ModelConfigView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int
    api_model: str
    api_base_url: str
    api_key_set: bool
    timeout_ms: int
    https_proxy: Optional[str] = None
    system_message: Optional[str] = None
    temperature: float

    @classmethod
    def from_parameters(cls, params: ModelParameters) -> "ModelConfigView":
        return cls(
            version=params.version,
            api_model=params.model,
            api_base_url=params.base_url,
            api_key_set=bool(params.api_key),
            timeout_ms=params.timeout_ms,
            https_proxy=params.proxy,
            system_message=params.system_message,
            temperature=params.temperature
        )
