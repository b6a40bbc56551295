"""CTT address tables: DDL, column lists and the locality back-fill."""

from typing import NamedTuple

from cttdb import DatabaseService


class TableSpec(NamedTuple):
    name: str
    columns: list[str]


DISTRICTS = TableSpec("distritos", ["codigo", "nome"])
MUNICIPALITIES = TableSpec("concelhos", ["codigo_distrito", "codigo_concelho", "nome"])
PARISHES = TableSpec("freguesias", ["codigo_distrito", "codigo_concelho", "nome"])
LOCALITIES = TableSpec(
    "localidades", ["codigo_distrito", "codigo_concelho", "codigo_localidade", "nome"]
)
POSTAL_CODES = TableSpec(
    "codigos_postais",
    [
        "cp4",
        "cp3",
        "codigo_distrito",
        "codigo_concelho",
        "codigo_localidade",
        "designacao_postal",
        "nome_distrito",
        "nome_concelho",
        "nome_localidade",
        "codigo_arteria",
        "morada",
    ],
)

# Surrogate key and reference column types per dialect.
_ID_TYPES = {
    "sqlite": ("INTEGER PRIMARY KEY", "INTEGER"),
    "postgresql": ("BIGSERIAL PRIMARY KEY", "BIGINT"),
}

_BASE_DDL = """
CREATE TABLE IF NOT EXISTS distritos (
    codigo        VARCHAR(2)   PRIMARY KEY,
    nome          VARCHAR(100) NOT NULL,
    created_at    TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    updated_at    TIMESTAMP    DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_distritos_nome ON distritos(nome);

CREATE TABLE IF NOT EXISTS concelhos (
    id              {pk},
    codigo_distrito VARCHAR(2)   NOT NULL REFERENCES distritos(codigo),
    codigo_concelho VARCHAR(2)   NOT NULL,
    nome            VARCHAR(100) NOT NULL,
    created_at      TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    updated_at      TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (codigo_distrito, codigo_concelho)
);
CREATE INDEX IF NOT EXISTS idx_concelhos_nome ON concelhos(nome);
"""

_PARISHES_DDL = """
CREATE TABLE IF NOT EXISTS freguesias (
    id              {pk},
    codigo_distrito VARCHAR(2)   NOT NULL,
    codigo_concelho VARCHAR(2)   NOT NULL,
    nome            VARCHAR(150) NOT NULL,
    created_at      TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    updated_at      TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (codigo_distrito, codigo_concelho)
        REFERENCES concelhos (codigo_distrito, codigo_concelho),
    UNIQUE (codigo_distrito, codigo_concelho, nome)
);
CREATE INDEX IF NOT EXISTS idx_freguesias_nome ON freguesias(nome);
"""

_LOCALITIES_DDL = """
CREATE TABLE IF NOT EXISTS localidades (
    id                {pk},
    codigo_distrito   VARCHAR(2)   NOT NULL,
    codigo_concelho   VARCHAR(2)   NOT NULL,
    codigo_localidade VARCHAR(10)  NOT NULL,
    nome              VARCHAR(150) NOT NULL,{parish_ref}
    created_at        TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    updated_at        TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (codigo_distrito, codigo_concelho)
        REFERENCES concelhos (codigo_distrito, codigo_concelho),
    UNIQUE (codigo_distrito, codigo_concelho, codigo_localidade)
);
CREATE INDEX IF NOT EXISTS idx_localidades_nome ON localidades(nome);
CREATE INDEX IF NOT EXISTS idx_localidades_concelho ON localidades(codigo_distrito, codigo_concelho);
"""

_PARISH_REF = """
    freguesia_id      {ref} REFERENCES freguesias(id) ON DELETE SET NULL,"""

_POSTAL_CODES_DDL = """
CREATE TABLE IF NOT EXISTS codigos_postais (
    id                {pk},
    cp4               VARCHAR(4)   NOT NULL,
    cp3               VARCHAR(3)   NOT NULL,
    codigo_distrito   VARCHAR(2)   NOT NULL REFERENCES distritos(codigo),
    codigo_concelho   VARCHAR(2)   NOT NULL,
    codigo_localidade VARCHAR(10)  NOT NULL,
    localidade_id     {ref} REFERENCES localidades(id) ON DELETE SET NULL,
    designacao_postal VARCHAR(200) NOT NULL,
    nome_distrito     VARCHAR(100) NOT NULL,
    nome_concelho     VARCHAR(100) NOT NULL,
    nome_localidade   VARCHAR(150) NOT NULL,
    codigo_arteria    VARCHAR(20),
    morada            VARCHAR(500),
    created_at        TIMESTAMP    DEFAULT CURRENT_TIMESTAMP,
    updated_at        TIMESTAMP    DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_cp_cp4 ON codigos_postais(cp4);
CREATE INDEX IF NOT EXISTS idx_cp_designacao ON codigos_postais(designacao_postal);
CREATE INDEX IF NOT EXISTS idx_cp_concelho ON codigos_postais(codigo_distrito, codigo_concelho);
CREATE INDEX IF NOT EXISTS idx_cp_localidade_id ON codigos_postais(localidade_id);
"""

# The simplified layout keeps one row per postal code; the extended layout
# keeps one row per distinct address within a postal code.
_SIMPLIFIED_KEY_DDL = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_cp_codigo ON codigos_postais(cp4, cp3);
"""

_EXTENDED_KEY_DDL = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_cp_endereco
    ON codigos_postais(cp4, cp3, designacao_postal, (COALESCE(morada, '')));
CREATE INDEX IF NOT EXISTS idx_cp_codigo ON codigos_postais(cp4, cp3);
"""

_LOCALITY_MATCH = """
    l.codigo_distrito = codigos_postais.codigo_distrito
    AND l.codigo_concelho = codigos_postais.codigo_concelho
    AND l.codigo_localidade = codigos_postais.codigo_localidade"""

BACKFILL_LOCALITY_SQL = f"""
UPDATE codigos_postais
SET localidade_id = (SELECT l.id FROM localidades l WHERE {_LOCALITY_MATCH}),
    updated_at = CURRENT_TIMESTAMP
WHERE localidade_id IS NULL
  AND EXISTS (SELECT 1 FROM localidades l WHERE {_LOCALITY_MATCH})
"""


def schema_ddl(dialect: str, extended: bool = False) -> str:
    """Return the CREATE statements for the chosen dialect and layout."""
    try:
        pk, ref = _ID_TYPES[dialect]
    except KeyError:
        raise ValueError(f"Unsupported SQL dialect: {dialect}") from None

    parts = [_BASE_DDL.format(pk=pk)]
    if extended:
        parts.append(_PARISHES_DDL.format(pk=pk))
    parish_ref = _PARISH_REF.format(ref=ref) if extended else ""
    parts.append(_LOCALITIES_DDL.format(pk=pk, parish_ref=parish_ref))
    parts.append(_POSTAL_CODES_DDL.format(pk=pk, ref=ref))
    parts.append(_EXTENDED_KEY_DDL if extended else _SIMPLIFIED_KEY_DDL)
    return "".join(parts)


def truncation_order(extended: bool = False) -> list[str]:
    """Tables to empty on a forced reload, children before parents."""
    tables = [POSTAL_CODES.name, LOCALITIES.name]
    if extended:
        tables.append(PARISHES.name)
    tables += [MUNICIPALITIES.name, DISTRICTS.name]
    return tables


def ensure_schema(service: DatabaseService, extended: bool = False) -> None:
    """Create the address tables if they don't exist."""
    service.execute_ddl(schema_ddl(service.dialect, extended))
