"""Shared test fixtures."""

import pytest

from cttdb import create_service

DISTRICTS = ["11;Lisboa", "07;Évora"]
MUNICIPALITIES = ["11;06;Cascais", "11;06;Cascais", "07;05;Évora"]


def postal_line(
    district="11",
    municipality="06",
    locality_code="001",
    locality="Cascais",
    street_code="",
    street_type="",
    first_preposition="",
    title="",
    second_preposition="",
    designation="",
    cp4="2750",
    cp3="123",
    postal_designation="CASCAIS",
):
    """Build a 17-field todos_cp.txt line; fields 10-13 (door/client data) stay empty."""
    fields = [
        district,
        municipality,
        locality_code,
        locality,
        street_code,
        street_type,
        first_preposition,
        title,
        second_preposition,
        designation,
        "",
        "",
        "",
        "",
        cp4,
        cp3,
        postal_designation,
    ]
    return ";".join(fields)


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def write_ctt_files(tmp_path):
    """Write CTT source files (ISO-8859-1, like the real dataset) and return their directory."""
    data_dir = tmp_path / "todos_cp"
    data_dir.mkdir()

    def write(districts=None, municipalities=None, postal_codes=None, parishes=None):
        files = {
            "distritos.txt": DISTRICTS if districts is None else districts,
            "concelhos.txt": MUNICIPALITIES if municipalities is None else municipalities,
            "todos_cp.txt": [postal_line()] if postal_codes is None else postal_codes,
            "freguesias.txt": parishes,
        }
        for name, lines in files.items():
            if lines is not None:
                (data_dir / name).write_text("\r\n".join(lines) + "\r\n", encoding="iso-8859-1")
        return data_dir

    return write
