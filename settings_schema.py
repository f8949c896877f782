from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    weight_unit: Literal["kg", "lb"] = "kg"
    theme: Literal["light", "dark"] = "light"
    default_rest_seconds: int = Field(60, ge=0)
    rest_presets: str = "30,60,90,120,180"
    save_retry_attempts: int = Field(3, ge=1, le=10)
    save_retry_delay: float = Field(0.2, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    app_version: str = "1.0.0"


DEFAULT_SETTINGS = SettingsSchema().model_dump()


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
