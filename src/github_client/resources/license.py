"""Open source licenses known to GitHub."""

from typing import List, Optional

from .base import PopulatingObject


class GHLicense(PopulatingObject):
    """
    A license.

    The license listing only carries key, name and SPDX id; the text and the
    permission lists are fetched from ``/licenses/{key}`` on first access.
    """

    detail_field = "body"

    @property
    def key(self) -> str:
        return self._data.get("key", "")

    @property
    def name(self) -> str:
        return self._data.get("name", "")

    @property
    def spdx_id(self) -> Optional[str]:
        return self._data.get("spdx_id")

    @property
    def api_route(self) -> str:
        return f"/licenses/{self.key}"

    @property
    def body(self) -> Optional[str]:
        return self._detail("body")

    @property
    def description(self) -> Optional[str]:
        return self._detail("description")

    @property
    def implementation(self) -> Optional[str]:
        return self._detail("implementation")

    @property
    def featured(self) -> bool:
        return bool(self._detail("featured", False))

    @property
    def permissions(self) -> List[str]:
        return list(self._detail("permissions", []))

    @property
    def conditions(self) -> List[str]:
        return list(self._detail("conditions", []))

    @property
    def limitations(self) -> List[str]:
        return list(self._detail("limitations", []))

    def __eq__(self, other):
        if not isinstance(other, GHLicense):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"GHLicense(key={self.key!r})"
