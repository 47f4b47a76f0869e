"""Cell identifier model."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, ValidationError

from cellgeo.exceptions import InvalidCellIdError
from cellgeo.models._base import CellGeoBaseModel

_MCC_DIGITS = 3


class CellId(CellGeoBaseModel):
    """A cellular network cell.

    The canonical string form ``"{cell}-{mccmnc}-{area}"`` is the only
    key used by the cache and the device location index.

    Parameters
    ----------
    cell : int
        Cell tower id.
    mccmnc : int
        Carrier code: mobile country code followed by mobile network code.
    area : int
        Tracking/location area code.
    """

    cell: int = Field(ge=0, validation_alias=AliasChoices("cell", "cellTowerId", "cid"))
    mccmnc: int = Field(ge=0, validation_alias=AliasChoices("mccmnc", "carrierCode", "carrier_code"))
    area: int = Field(ge=0, validation_alias=AliasChoices("area", "areaCode", "area_code", "lac", "tac"))

    @classmethod
    def parse(cls, value: str | CellId) -> CellId:
        """Parse the canonical ``"{cell}-{mccmnc}-{area}"`` form.

        Raises :class:`InvalidCellIdError` for anything else.
        """
        if isinstance(value, CellId):
            return value
        parts = str(value).strip().split("-")
        if len(parts) != 3 or not all(part.isdigit() for part in parts):
            raise InvalidCellIdError(f"invalid cell id {value!r}; expected '<cell>-<mccmnc>-<area>'")
        return cls(cell=int(parts[0]), mccmnc=int(parts[1]), area=int(parts[2]))

    @classmethod
    def from_parts(cls, cell: Any, mccmnc: Any, area: Any) -> CellId:
        try:
            return cls.model_validate({"cell": cell, "mccmnc": mccmnc, "area": area})
        except ValidationError as exc:
            raise InvalidCellIdError(f"invalid cell id parts: {exc.error_count()} error(s)") from exc

    @property
    def canonical(self) -> str:
        return f"{self.cell}-{self.mccmnc}-{self.area}"

    @property
    def mcc(self) -> int:
        """Mobile country code (first three digits of the carrier code)."""
        return int(str(self.mccmnc)[:_MCC_DIGITS])

    @property
    def mnc(self) -> int:
        """Mobile network code (carrier code digits after the country code)."""
        rest = str(self.mccmnc)[_MCC_DIGITS:]
        return int(rest) if rest else 0

    def __str__(self) -> str:
        return self.canonical
