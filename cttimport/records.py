"""Positional parsers for the CTT file layouts.

Every record is a NamedTuple whose field order matches the columns of its
table, so a parsed record can be written as a row directly.
"""

from typing import NamedTuple

from cttimport.errors import MalformedRecord

DELIMITER = ";"

DISTRICT_FIELDS = 2
MUNICIPALITY_FIELDS = 3
PARISH_FIELDS = 3
POSTAL_CODE_FIELDS = 17


class District(NamedTuple):
    code: str
    name: str

    @property
    def key(self) -> tuple[str]:
        return (self.code,)


class Municipality(NamedTuple):
    district_code: str
    municipality_code: str
    name: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.district_code, self.municipality_code)


class Parish(NamedTuple):
    district_code: str
    municipality_code: str
    name: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.district_code, self.municipality_code, self.name)


class Locality(NamedTuple):
    district_code: str
    municipality_code: str
    locality_code: str
    name: str

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.district_code, self.municipality_code, self.locality_code)


class PostalCodeLine(NamedTuple):
    """One row of todos_cp.txt."""

    district_code: str
    municipality_code: str
    locality_code: str
    locality_name: str
    street_code: str | None
    street_type: str
    first_preposition: str
    title: str
    second_preposition: str
    designation: str
    cp4: str
    cp3: str
    postal_designation: str

    @property
    def municipality_key(self) -> tuple[str, str]:
        return (self.district_code, self.municipality_code)

    @property
    def locality(self) -> Locality:
        return Locality(
            self.district_code, self.municipality_code, self.locality_code, self.locality_name
        )

    @property
    def address(self) -> str | None:
        return compose_address(
            self.street_type,
            self.first_preposition,
            self.title,
            self.second_preposition,
            self.designation,
        )


def split_fields(line: str, minimum: int) -> list[str]:
    """Split a line on the delimiter and trim each field.

    Raises MalformedRecord when fewer than ``minimum`` fields are present.
    """
    fields = [field.strip() for field in line.split(DELIMITER)]
    if len(fields) < minimum:
        raise MalformedRecord(f"Expected at least {minimum} fields, got {len(fields)}")
    return fields


def compose_address(
    street_type: str,
    first_preposition: str,
    title: str,
    second_preposition: str,
    designation: str,
) -> str | None:
    """Join the non-empty street subfields with single spaces, or None if all are empty."""
    parts = [street_type, first_preposition, title, second_preposition, designation]
    address = " ".join(part for part in parts if part)
    return address or None


def parse_district(line: str) -> District:
    fields = split_fields(line, DISTRICT_FIELDS)
    return District(fields[0], fields[1])


def parse_municipality(line: str) -> Municipality:
    fields = split_fields(line, MUNICIPALITY_FIELDS)
    return Municipality(fields[0], fields[1], fields[2])


def parse_parish(line: str) -> Parish:
    fields = split_fields(line, PARISH_FIELDS)
    return Parish(fields[0], fields[1], fields[2])


def parse_postal_code_line(line: str) -> PostalCodeLine:
    """Parse a todos_cp.txt line; the postal code halves are mandatory."""
    fields = split_fields(line, POSTAL_CODE_FIELDS)
    cp4, cp3 = fields[14], fields[15]
    if not cp4 or not cp3:
        raise MalformedRecord("Missing postal code")
    return PostalCodeLine(
        district_code=fields[0],
        municipality_code=fields[1],
        locality_code=fields[2],
        locality_name=fields[3],
        street_code=fields[4] or None,
        street_type=fields[5],
        first_preposition=fields[6],
        title=fields[7],
        second_preposition=fields[8],
        designation=fields[9],
        cp4=cp4,
        cp3=cp3,
        postal_designation=fields[16],
    )
