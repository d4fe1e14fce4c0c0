# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""StructlogAdapter: routes flymap's structlog events to the ``flymap`` logger.

flymap modules log with ``structlog.get_logger(...)`` and event-style calls
(``logger.debug("plan_compiled", pair=..., steps=...)``). The adapter renders
those events through a ``ProcessorFormatter`` on a handler attached to the
``flymap`` stdlib logger only, so a host application's root logging is left
alone. Settings come from ``flymap.logging``::

    flymap:
      logging:
        enabled: true
        format: json          # console | json | logfmt
        level:
          flymap: INFO
          flymap.mapping.compiler: DEBUG
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from flymap.core.config import Config

LIBRARY_LOGGER = "flymap"

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


class StructlogAdapter:
    """LoggingPort backed by structlog and a library-scoped stdlib handler.

    Args:
        stream: Where rendered events go. Defaults to ``sys.stderr``.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._level = "INFO"
        self._format = "console"
        self._module_levels: dict[str, str] = {}

    @property
    def handler(self) -> logging.Handler | None:
        """The handler this adapter installed on the ``flymap`` logger, if any."""
        for handler in logging.getLogger(LIBRARY_LOGGER).handlers:
            if handler.get_name() == LIBRARY_LOGGER:
                return handler
        return None

    def configure(self, config: Config) -> None:
        levels = config.get_section("flymap.logging.level")
        self._level = str(levels.pop(LIBRARY_LOGGER, "INFO")).upper()
        self._module_levels = {name: str(level).upper() for name, level in levels.items()}
        self._format = str(config.get("flymap.logging.format", "console")).lower()

        structlog.configure(
            processors=[*_SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )
        self._install_handler()
        self.set_level(LIBRARY_LOGGER, self._level)
        for name, level in self._module_levels.items():
            self.set_level(name, level)

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.INFO))

    def _renderer(self) -> structlog.types.Processor:
        if self._format == "json":
            return structlog.processors.JSONRenderer()
        if self._format == "logfmt":
            return structlog.processors.LogfmtRenderer()
        return structlog.dev.ConsoleRenderer(colors=False)

    def _install_handler(self) -> None:
        library = logging.getLogger(LIBRARY_LOGGER)
        previous = self.handler
        if previous is not None:
            library.removeHandler(previous)

        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, self._renderer()],
        )
        handler = logging.StreamHandler(self._stream or sys.stderr)
        handler.set_name(LIBRARY_LOGGER)
        handler.setFormatter(formatter)
        library.addHandler(handler)
        library.propagate = False
