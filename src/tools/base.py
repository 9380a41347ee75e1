"""Adapter that turns an async function into a registrable tool capability.

Arguments arrive as the JSON object the model produced.  They are validated
against a Pydantic model (field aliases match the camelCase names in
``tools.json``) before the function runs, so invalid input becomes a
failure string instead of an exception.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)


class ToolArgs(BaseModel):
    """Base model for tool arguments: accepts aliases or field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ToolCapability(Generic[ArgsT]):
    """A named tool backed by ``func(args_model) -> str``."""

    def __init__(
        self,
        name: str,
        args_model: type[ArgsT],
        func: Callable[[ArgsT], Awaitable[str]],
    ) -> None:
        self.name = name
        self.args_model = args_model
        self._func = func

    async def execute(self, args: Mapping[str, Any]) -> str:
        try:
            params = self.args_model.model_validate(args)
        except ValidationError as exc:
            logger.warning("Invalid arguments for %s: %s", self.name, exc)
            return f"❌ Invalid arguments for {self.name}: {exc.errors(include_url=False)}"
        return await self._func(params)

    def __repr__(self) -> str:
        return f"ToolCapability(name={self.name!r})"
