"""Runner configuration loaded from unitrun.yaml."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError

from unitrun.bus import MessageBus, StopOnFailMessageBus
from unitrun.constructor import (
    ConstructorArgumentResolver,
    ConstructorSelector,
    NoArgumentResolver,
    select_parameterless_constructor,
    select_sole_constructor,
)
from unitrun.invoker import MethodSubject, TestSubject
from unitrun.models.base import Model
from unitrun.ordering import CASE_ORDERERS, COLLECTION_ORDERERS
from unitrun.runners.context import ExecutionOptions

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "unitrun.yaml"

CONSTRUCTOR_POLICIES: dict[str, ConstructorSelector] = {
    "parameterless": select_parameterless_constructor,
    "sole": select_sole_constructor,
}


class ConfigurationError(ValueError):
    """The runner configuration could not be loaded or is invalid."""


class RunnerConfig(Model):
    """Settings that shape a run."""

    stop_on_fail: bool = Field(
        default=False, description="Cancel the run after the first failed test"
    )
    diagnostic_messages: bool = Field(
        default=False, description="Log engine diagnostics such as orderer fallbacks"
    )
    case_orderer: Literal["discovery", "display-name"] = Field(
        default="discovery", description="Order of test cases within a class"
    )
    collection_orderer: Literal["discovery", "name"] = Field(
        default="discovery", description="Order of collections within the assembly"
    )
    constructor_policy: Literal["parameterless", "sole"] = Field(
        default="parameterless",
        description="Which test class constructors are accepted",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Level for the root logger"
    )

    def with_overrides(self, **overrides: Any) -> "RunnerConfig":
        """Return a copy with every non-None override applied and validated."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        try:
            return RunnerConfig.model_validate(self.model_dump() | values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid runner configuration: {e}") from e


async def load_runner_config(path: Path) -> RunnerConfig:
    """Load and validate a runner configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = await asyncio.to_thread(path.read_text)

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        log.debug("Config file %s is empty, using defaults", path)
        return RunnerConfig()

    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid runner configuration in {path}: expected a mapping")

    try:
        return RunnerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid runner configuration in {path}: {e}") from e


def build_options(
    config: RunnerConfig,
    *,
    subject: TestSubject | None = None,
    resolver: ConstructorArgumentResolver | None = None,
) -> ExecutionOptions:
    """Translate a configuration into the engine's extension points."""
    return ExecutionOptions(
        subject=subject or MethodSubject(),
        case_orderer=CASE_ORDERERS[config.case_orderer](),
        collection_orderer=COLLECTION_ORDERERS[config.collection_orderer](),
        constructor_selector=CONSTRUCTOR_POLICIES[config.constructor_policy],
        argument_resolver=resolver or NoArgumentResolver(),
    )


def build_bus(config: RunnerConfig, bus: MessageBus) -> MessageBus:
    """Wrap ``bus`` with the policies the configuration enables."""
    if config.stop_on_fail:
        return StopOnFailMessageBus(inner=bus)
    return bus
