from typing import Annotated

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from sluice.bootstrap.config.loader import get_configfile


class FlowSettings(BaseModel):
    chunk_size: Annotated[
        int,
        Field(
            description=(
                "Maximum size, in bytes, of a chunk read from a file source.\n"
                "Larger chunks mean fewer reads but more memory per chunk."
            ),
            default=64 * 1024,
            gt=0
        )
    ]

    high_water_mark: Annotated[
        int,
        Field(
            description=(
                "Number of buffered bytes at which a sink reports that it is full.\n"
                "The source is paused until the sink drains below this mark.\n"
                "Together with chunk_size it bounds the memory used by a copy."
            ),
            default=16 * 1024,
            gt=0
        )
    ]


class SluiceConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SLUICE_",
        env_nested_delimiter="__",
        extra="ignore"
    )

    flow: Annotated[
        FlowSettings,
        Field(
            description=(
                "Flow-control configuration.\n"
                "Controls how much data is read at once and how much a sink\n"
                "may buffer before the source is throttled."
            ),
            default_factory=FlowSettings
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: tuple[PydanticBaseSettingsSource, ...] = (init_settings, env_settings)

        configfile = get_configfile()
        if configfile is not None:
            sources += (YamlConfigSettingsSource(settings_cls, yaml_file=configfile),)

        return sources
