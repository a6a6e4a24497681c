"""UI selection state from which the global filter snapshot is derived."""
from typing import Dict, List, Optional

from pydantic import Field

from idvt.schemas.query import CamelModel


class PeriodSelection(CamelModel):
    type: str = "fixed"  # fixed | relative
    value: str


class NamedItem(CamelModel):
    id: str
    name: Optional[str] = None


class CategoryOptionCombo(CamelModel):
    id: str
    category_options: List[NamedItem] = Field(default_factory=list)


class CategoryCombo(CamelModel):
    categories: List[NamedItem] = Field(default_factory=list)
    category_option_combos: List[CategoryOptionCombo] = Field(default_factory=list)


class Selection(CamelModel):
    periods: List[PeriodSelection] = Field(default_factory=list)
    levels: List[str] = Field(default_factory=list)
    organisations: List[str] = Field(default_factory=list)
    min_sublevel: Optional[int] = None
    groups: List[str] = Field(default_factory=list)
    data_elements: List[NamedItem] = Field(default_factory=list)
    data_element_groups: List[str] = Field(default_factory=list)
    data_element_group_sets: List[str] = Field(default_factory=list)
    # category id -> comma separated category option ids
    attribution: Dict[str, str] = Field(default_factory=dict)
    category_combo: Optional[CategoryCombo] = None
