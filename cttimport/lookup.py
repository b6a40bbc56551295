"""Cached read queries behind the address-form endpoints.

Hierarchy lists change only when the importer runs, so they are cached for
an hour; free-text queries get a short TTL. Call clear() after an import.
"""

import re
import threading
from typing import Any

from cachetools import TTLCache

from cttdb import DatabaseService

POSTAL_CODE_RE = re.compile(r"^(\d{4})-?(\d{3})$")

MIN_POSTAL_PREFIX = 2
MIN_LOCALITY_QUERY = 3
MIN_SEARCH_QUERY = 4
POSTAL_AUTOCOMPLETE_LIMIT = 10
LOCALITY_AUTOCOMPLETE_LIMIT = 15
SEARCH_LIMIT = 20

_POSTAL_CODE_COLUMNS = """
    cp4, cp3, designacao_postal, nome_distrito, nome_concelho, nome_localidade,
    morada, localidade_id"""


def format_postal_code(cp4: str, cp3: str) -> str:
    return f"{cp4}-{cp3}"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AddressLookup:
    """Read-only queries over the imported address tables."""

    def __init__(
        self,
        service: DatabaseService,
        ttl: int = 3600,
        search_ttl: int = 300,
        maxsize: int = 1024,
    ):
        self._service = service
        self._lock = threading.Lock()
        self._hierarchy: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._queries: TTLCache = TTLCache(maxsize=maxsize, ttl=search_ttl)

    def _cached(self, cache: TTLCache, key: tuple, sql: str, params: tuple = ()) -> list[dict]:
        with self._lock:
            if key in cache:
                return cache[key]
        with self._service.transaction():
            rows = self._service.execute(sql, params)
        with self._lock:
            cache[key] = rows
        return rows

    def _sql(self, sql: str) -> str:
        return sql.replace("?", self._service.placeholder)

    def clear(self) -> None:
        with self._lock:
            self._hierarchy.clear()
            self._queries.clear()

    def stats(self) -> dict[str, Any]:
        """Row counts of the address tables and the latest postal-code update."""
        rows = self._cached(
            self._hierarchy,
            ("stats",),
            "SELECT (SELECT COUNT(*) FROM distritos) AS distritos, "
            "(SELECT COUNT(*) FROM concelhos) AS concelhos, "
            "(SELECT COUNT(*) FROM localidades) AS localidades, "
            "(SELECT COUNT(*) FROM codigos_postais) AS codigos_postais, "
            "(SELECT MAX(updated_at) FROM codigos_postais) AS last_update",
        )
        return dict(rows[0])

    def districts(self) -> list[dict]:
        return self._cached(
            self._hierarchy,
            ("distritos",),
            "SELECT codigo, nome FROM distritos ORDER BY nome",
        )

    def municipalities(self, district_code: str) -> list[dict]:
        return self._cached(
            self._hierarchy,
            ("concelhos", district_code),
            self._sql(
                "SELECT id, codigo_concelho, nome FROM concelhos "
                "WHERE codigo_distrito = ? ORDER BY nome"
            ),
            (district_code,),
        )

    def localities(self, district_code: str, municipality_code: str) -> list[dict]:
        return self._cached(
            self._hierarchy,
            ("localidades", district_code, municipality_code),
            self._sql(
                "SELECT id, codigo_localidade, nome FROM localidades "
                "WHERE codigo_distrito = ? AND codigo_concelho = ? ORDER BY nome"
            ),
            (district_code, municipality_code),
        )

    def postal_code(self, cp4: str, cp3: str) -> dict[str, Any] | None:
        """Return the first address row for a postal code, or None."""
        rows = self._cached(
            self._hierarchy,
            ("cp", cp4, cp3),
            self._sql(
                f"SELECT {_POSTAL_CODE_COLUMNS} FROM codigos_postais "
                "WHERE cp4 = ? AND cp3 = ? ORDER BY id LIMIT 1"
            ),
            (cp4, cp3),
        )
        if not rows:
            return None
        return {**rows[0], "codigo_postal": format_postal_code(cp4, cp3)}

    def autocomplete_postal_codes(self, query: str) -> list[dict[str, str]]:
        query = query.strip()
        if len(query) < MIN_POSTAL_PREFIX:
            return []
        rows = self._cached(
            self._queries,
            ("autocomplete_cp", query),
            self._sql(
                "SELECT DISTINCT cp4, cp3, designacao_postal, nome_localidade "
                "FROM codigos_postais WHERE cp4 LIKE ? ESCAPE '\\' "
                f"ORDER BY cp4, cp3 LIMIT {POSTAL_AUTOCOMPLETE_LIMIT}"
            ),
            (_escape_like(query) + "%",),
        )
        results = []
        for row in rows:
            code = format_postal_code(row["cp4"], row["cp3"])
            results.append(
                {
                    "codigo_postal": code,
                    "label": f"{code} - {row['designacao_postal']}",
                    "designacao": row["designacao_postal"],
                    "localidade": row["nome_localidade"],
                }
            )
        return results

    def autocomplete_localities(self, query: str) -> list[dict[str, Any]]:
        query = query.strip()
        if len(query) < MIN_LOCALITY_QUERY:
            return []
        rows = self._cached(
            self._queries,
            ("autocomplete_loc", query.lower()),
            self._sql(
                "SELECT id, nome, codigo_distrito, codigo_concelho FROM localidades "
                "WHERE LOWER(nome) LIKE ? ESCAPE '\\' "
                f"ORDER BY nome LIMIT {LOCALITY_AUTOCOMPLETE_LIMIT}"
            ),
            ("%" + _escape_like(query.lower()) + "%",),
        )
        return [
            {
                "id": row["id"],
                "nome": row["nome"],
                "codigo_completo": f"{row['codigo_distrito']}.{row['codigo_concelho']}",
            }
            for row in rows
        ]

    def search(self, query: str) -> list[dict[str, Any]]:
        """Find addresses whose designation or street contains every term of ``query``."""
        query = query.strip()
        if len(query) < MIN_SEARCH_QUERY:
            return []
        terms = [term.lower() for term in query.split()]
        condition = " AND ".join(
            "(LOWER(designacao_postal) LIKE ? ESCAPE '\\' "
            "OR LOWER(COALESCE(morada, '')) LIKE ? ESCAPE '\\')"
            for _ in terms
        )
        params: list[str] = []
        for term in terms:
            pattern = "%" + _escape_like(term) + "%"
            params += [pattern, pattern]

        rows = self._cached(
            self._queries,
            ("search", tuple(terms)),
            self._sql(
                f"SELECT {_POSTAL_CODE_COLUMNS} FROM codigos_postais "
                f"WHERE {condition} ORDER BY cp4, cp3 LIMIT {SEARCH_LIMIT}"
            ),
            tuple(params),
        )
        results = []
        for row in rows:
            parts = [
                row["morada"],
                row["designacao_postal"],
                f"{row['nome_localidade']}, {row['nome_concelho']}",
                row["nome_distrito"],
            ]
            results.append(
                {
                    "codigo_postal": format_postal_code(row["cp4"], row["cp3"]),
                    "endereco_completo": ", ".join(part for part in parts if part),
                    "distrito": row["nome_distrito"],
                    "concelho": row["nome_concelho"],
                    "localidade": row["nome_localidade"],
                }
            )
        return results

    def validate_postal_code(self, text: str) -> dict[str, Any]:
        """Check a ``NNNN-NNN`` (or ``NNNNNNN``) code against the imported data."""
        match = POSTAL_CODE_RE.match(text.strip())
        if not match:
            return {"valid": False, "codigo_postal": text, "formatted": None}
        cp4, cp3 = match.groups()
        entry = self.postal_code(cp4, cp3)
        return {
            "valid": entry is not None,
            "codigo_postal": format_postal_code(cp4, cp3),
            "formatted": entry,
        }
