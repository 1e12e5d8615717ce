from functools import lru_cache

from pydantic import ValidationError

from sluice.bootstrap.config.settings import SluiceConfig


@lru_cache
def get_config() -> SluiceConfig:
    try:
        return SluiceConfig()
    except FileNotFoundError as ex:
        raise SystemExit(f"sluice-copy: configuration file not found: {ex}")
    except ValidationError as ex:
        lines = ["sluice-copy: invalid configuration"]
        for err in ex.errors():
            field = ".".join(str(loc) for loc in err["loc"])
            lines.append(f"  {field}: {err['msg']}")
        raise SystemExit("\n".join(lines))
