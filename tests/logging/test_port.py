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
"""Tests for the LoggingPort protocol."""

from typing import Any

import structlog

from flymap.core.config import Config
from flymap.logging.port import LoggingPort


class RecordingLogging:
    """In-memory backend that remembers the levels it was asked to set."""

    def __init__(self) -> None:
        self.levels: dict[str, str] = {}

    def configure(self, config: Config) -> None:
        for name, level in config.get_section("flymap.logging.level").items():
            self.set_level(name, level)

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        self.levels[name] = level


class TestLoggingPortProtocol:
    def test_conforming_backend_is_instance(self):
        assert isinstance(RecordingLogging(), LoggingPort)

    def test_backend_reads_flymap_section(self):
        backend = RecordingLogging()
        backend.configure(Config({"flymap": {"logging": {"level": {"flymap.mapping": "WARNING"}}}}))
        assert backend.levels == {"flymap.mapping": "WARNING"}

    def test_missing_method_is_not_instance(self):
        class GetterOnly:
            def get_logger(self, name: str) -> Any:
                return None

        assert not isinstance(GetterOnly(), LoggingPort)
