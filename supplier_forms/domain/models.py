"""Domain models for the supplier form filler."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

# Field label -> matched value. An empty string means "no match found".
MatchResult = Dict[str, str]


@dataclass(frozen=True)
class SheetCell:
    """One cell of the first worksheet, as displayed text."""
    address: str
    text: str


@dataclass(frozen=True)
class FieldCandidate:
    """A fillable field detected in a supplier form."""
    label: str
    target_cell: str


@dataclass(frozen=True)
class FillDirective:
    """A single value to write into a target cell."""
    target_cell: str
    value: str
    label_guessed: Optional[str] = None


@dataclass(frozen=True)
class PendingField:
    """A detected field for which no value could be resolved."""
    label_guessed: str
    target_cell: str


@dataclass(frozen=True)
class CorrectionDirective:
    """An overwrite derived from free-text user feedback."""
    target_cell: str
    value: str


@dataclass
class FillResult:
    """Result of writing directives into a workbook."""
    content: bytes
    written: List[Union[FillDirective, CorrectionDirective]] = field(default_factory=list)
    overwritten: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def filled_count(self) -> int:
        return len(self.written)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class MergeOutcome:
    """Merged master data plus an optional persistence warning."""
    data: Dict[str, str]
    warning: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.warning is None
