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
"""Member-name normalisation and segmentation for flattening."""

from __future__ import annotations

import re

_CAMEL_BOUNDARY = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z0-9]+|[A-Z]+")


def normalize(name: str) -> str:
    """Case- and separator-insensitive form: ``first_name`` == ``FirstName``."""
    return name.replace("_", "").lower()


def split_segments(name: str) -> list[str]:
    """Split a member name into the words it is made of.

    >>> split_segments("category_name")
    ['category', 'name']
    >>> split_segments("CategoryName")
    ['Category', 'Name']
    >>> split_segments("shippingAddressZIPCode")
    ['shipping', 'Address', 'ZIP', 'Code']
    """
    segments: list[str] = []
    for part in name.split("_"):
        if part:
            segments.extend(_CAMEL_BOUNDARY.findall(part))
    return segments
