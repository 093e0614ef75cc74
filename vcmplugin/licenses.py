"""License texts offered by ``create``."""
from __future__ import annotations

from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict


class LicenseType(str, Enum):
    MIT = "MIT"
    ISC = "ISC"
    APACHE = "APACHE-2.0"
    GPL3 = "GPL-3.0"


def _mit(user: str, year: int) -> str:
    return f"""Copyright {year} {user}

Permission is hereby granted, free of charge, to any person obtaining a copy of this software and associated
documentation files (the "Software"), to deal in the Software without restriction, including without limitation
the rights to use, copy, modify, merge, publish, distribute, sublicense, and/or sell copies of the Software,
and to permit persons to whom the Software is furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO
THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS
OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT,
TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
"""


def _isc(user: str, year: int) -> str:
    return f"""Copyright (c) {year}, {user}

Permission to use, copy, modify, and/or distribute this software for any
purpose with or without fee is hereby granted, provided that the above
copyright notice and this permission notice appear in all copies.

THE SOFTWARE IS PROVIDED "AS IS" AND THE AUTHOR DISCLAIMS ALL WARRANTIES
WITH REGARD TO THIS SOFTWARE INCLUDING ALL IMPLIED WARRANTIES OF
MERCHANTABILITY AND FITNESS. IN NO EVENT SHALL THE AUTHOR BE LIABLE FOR
ANY SPECIAL, DIRECT, INDIRECT, OR CONSEQUENTIAL DAMAGES OR ANY DAMAGES
WHATSOEVER RESULTING FROM LOSS OF USE, DATA OR PROFITS, WHETHER IN AN
ACTION OF CONTRACT, NEGLIGENCE OR OTHER TORTIOUS ACTION, ARISING OUT OF
OR IN CONNECTION WITH THE USE OR PERFORMANCE OF THIS SOFTWARE.
"""


def _apache(user: str, year: int) -> str:
    return f"""Copyright {year} {user}

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

 http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""


def _gpl3(user: str, year: int) -> str:
    return f"""Copyright (C) {year} {user}

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""


LICENSE_TEXTS: Dict[LicenseType, Callable[[str, int], str]] = {
    LicenseType.MIT: _mit,
    LicenseType.ISC: _isc,
    LicenseType.APACHE: _apache,
    LicenseType.GPL3: _gpl3,
}


def license_text(license_type: LicenseType | str, user: str, year: int | None = None) -> str:
    try:
        kind = LicenseType(license_type)
    except ValueError as exc:
        choices = ", ".join(item.value for item in LicenseType)
        raise ValueError(f"Unknown license '{license_type}', expected one of {choices}") from exc
    return LICENSE_TEXTS[kind](user, year or date.today().year)


def write_license(user: str, license_type: LicenseType | str, plugin_path: Path, year: int | None = None) -> Path:
    target = plugin_path / "LICENSE.md"
    target.write_text(license_text(license_type, user, year), encoding="utf-8")
    return target


__all__ = ["LICENSE_TEXTS", "LicenseType", "license_text", "write_license"]
