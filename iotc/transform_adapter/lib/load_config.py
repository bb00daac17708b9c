import json
import logging
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..server.errors import ConfigurationError
from ..server.models import D2CMessage

logger = logging.getLogger(__name__)


class D2CMessageRaw(BaseModel):
    """One entry of "d2cMessages" as written in the config file"""

    model_config = ConfigDict(populate_by_name=True)

    path: str = ""
    transform: str = ""
    transform_file: str = Field(default="", alias="transformFile")
    device_id_path_param: str = Field(default="", alias="deviceIdPathParam")
    device_id_body_field: str = Field(default="", alias="deviceIdBodyField")
    device_id_body_query: str = Field(default="", alias="deviceIdBodyQuery")
    auth_header: str = Field(default="", alias="authHeader")
    auth_query_param: str = Field(default="", alias="authQueryParam")


class ConfigRaw(BaseModel):
    """Adapter config file, before processing"""

    model_config = ConfigDict(populate_by_name=True)

    d2c_messages: List[D2CMessageRaw] = Field(default_factory=list, alias="d2cMessages")


def validate(config: ConfigRaw) -> None:
    """Check route definitions for missing or contradictory fields"""

    for message in config.d2c_messages:
        if not message.path:
            raise ConfigurationError("path missing in D2C message definition")

        if message.transform and message.transform_file:
            raise ConfigurationError(
                "either transform or transformFile may be defined, not both, "
                f"in D2C message definition {message.path}"
            )

        if bool(message.auth_header) == bool(message.auth_query_param):
            raise ConfigurationError(
                f"either authHeader or authQueryParam must be defined in D2C message definition {message.path}"
            )

        device_id_sources = [
            message.device_id_path_param,
            message.device_id_body_field,
            message.device_id_body_query,
        ]
        if sum(1 for s in device_id_sources if s) != 1:
            raise ConfigurationError(
                "exactly one of deviceIdPathParam, deviceIdBodyField or deviceIdBodyQuery "
                f"must be defined in D2C message definition {message.path}"
            )


def load_config(path) -> List[D2CMessage]:
    """
    Load, parse and validate an adapter config file

    Transform files ("transformFile") are resolved relative to the config
    file directory and their content becomes the route transform.

    Example:
      messages = load_config("/etc/transform-adapter/config.json")
      messages[0].path  # "/{id}/message"
    """
    config_path = Path(path)
    logger.debug("Reading configuration file %s...", config_path)

    try:
        config = ConfigRaw.model_validate(json.loads(config_path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        raise ConfigurationError(f"unable to load config {config_path}: {e}", cause=e) from e

    validate(config)

    messages: List[D2CMessage] = []
    for message in config.d2c_messages:
        transform = message.transform
        if message.transform_file:
            transform_path = config_path.parent / message.transform_file
            try:
                transform = transform_path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigurationError(
                    f"unable to read transform file {transform_path} for route {message.path}: {e}", cause=e
                ) from e

        messages.append(
            D2CMessage(
                path=message.path,
                transform=transform,
                device_id_path_param=message.device_id_path_param,
                device_id_body_field=message.device_id_body_field,
                device_id_body_query=message.device_id_body_query,
                auth_header=message.auth_header,
                auth_query_param=message.auth_query_param,
            )
        )

    logger.info("Loaded %d D2C message definition(s) from %s", len(messages), config_path)
    return messages
