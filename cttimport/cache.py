"""In-memory reference cache used to validate and deduplicate child records.

Parent keys (districts, municipalities, parishes) are few and are kept in
full: evicting one would make its children look orphaned. Locality keys run
to tens of thousands, so they live in a fixed-capacity LRU; a key that falls
out and shows up again is staged a second time and dropped by the database's
insert-or-ignore.

The cache must only hold keys whose rows are (or are about to be) committed.
When a batch fails, the orchestrator hands back the keys that batch added
through the ``forget_*`` methods.
"""

from typing import Iterable

from cachetools import LRUCache

from cttimport.errors import ReferentialGap
from cttimport.records import District, Municipality, Parish

DEFAULT_LOCALITY_CAPACITY = 10000


class ReferenceCache:
    def __init__(self, locality_capacity: int = DEFAULT_LOCALITY_CAPACITY):
        self.districts: dict[str, str] = {}
        self.municipalities: dict[tuple[str, str], str] = {}
        self.parishes: set[tuple[str, str, str]] = set()
        self._localities: LRUCache = LRUCache(maxsize=locality_capacity)

    def add_district(self, district: District) -> bool:
        """Register a district; True if its code was not cached yet."""
        if district.code in self.districts:
            return False
        self.districts[district.code] = district.name
        return True

    def add_municipality(self, municipality: Municipality) -> bool:
        """Register a municipality. Raises ReferentialGap if its district is unknown."""
        self.district_name(municipality.district_code)
        if municipality.key in self.municipalities:
            return False
        self.municipalities[municipality.key] = municipality.name
        return True

    def add_parish(self, parish: Parish) -> bool:
        """Register a parish. Raises ReferentialGap if its municipality is unknown."""
        self.municipality_name(parish.district_code, parish.municipality_code)
        if parish.key in self.parishes:
            return False
        self.parishes.add(parish.key)
        return True

    def forget_district(self, district: District) -> None:
        self.districts.pop(district.code, None)

    def forget_municipality(self, municipality: Municipality) -> None:
        self.municipalities.pop(municipality.key, None)

    def forget_parish(self, parish: Parish) -> None:
        self.parishes.discard(parish.key)

    def district_name(self, code: str) -> str:
        try:
            return self.districts[code]
        except KeyError:
            raise ReferentialGap("district", (code,)) from None

    def municipality_name(self, district_code: str, municipality_code: str) -> str:
        try:
            return self.municipalities[(district_code, municipality_code)]
        except KeyError:
            raise ReferentialGap("municipality", (district_code, municipality_code)) from None

    def mark_locality(self, key: tuple[str, str, str]) -> bool:
        """Record a locality key; True if it was not already cached."""
        seen = key in self._localities
        # Assignment refreshes recency, so frequently repeated localities stay cached.
        self._localities[key] = True
        return not seen

    def forget_localities(self, keys: Iterable[tuple[str, str, str]]) -> None:
        """Drop locality keys so the next line carrying them stages them again."""
        for key in keys:
            self._localities.pop(key, None)

    @property
    def locality_capacity(self) -> int:
        return self._localities.maxsize

    def stats(self) -> dict[str, int]:
        return {
            "districts": len(self.districts),
            "municipalities": len(self.municipalities),
            "parishes": len(self.parishes),
            "localities": len(self._localities),
            "locality_capacity": self._localities.maxsize,
        }
