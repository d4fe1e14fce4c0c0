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
"""Profiles group related mapping registrations.

Usage::

    class UserProfile(Profile):
        def configure(self) -> None:
            self.create_map(Employee, EmployeeDTO)
            self.create_map(Manager, ManagerDTO).include_base(Employee, EmployeeDTO)

    mapper.add_profile(UserProfile)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flymap.kernel.exceptions import ConfigurationException

if TYPE_CHECKING:
    from flymap.mapping.adapters import ConverterBinding
    from flymap.mapping.mapper import Mapper
    from flymap.mapping.store import TypePairConfigBuilder


class Profile:
    """Base class for a named set of registrations applied to a Mapper."""

    def __init__(self) -> None:
        self._mapper: Mapper | None = None

    @property
    def name(self) -> str:
        return type(self).__qualname__

    def configure(self) -> None:
        """Declare mappings with :meth:`create_map` and :meth:`register_converter`."""
        raise NotImplementedError

    def create_map(self, source: type, destination: type, *, reverse: bool = False) -> TypePairConfigBuilder:
        return self._require_mapper().register_pair(source, destination, reverse=reverse)

    def register_converter(self, source: Any, destination: Any, converter: Any) -> ConverterBinding:
        return self._require_mapper().register_converter(source, destination, converter)

    def apply(self, mapper: Mapper) -> None:
        self._mapper = mapper
        try:
            self.configure()
        finally:
            self._mapper = None

    def _require_mapper(self) -> Mapper:
        if self._mapper is None:
            raise ConfigurationException(
                f"{self.name}: registrations are only allowed inside configure()",
                code="PROFILE_NOT_APPLYING",
            )
        return self._mapper
