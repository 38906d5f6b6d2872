"""Domain models for archive search.

Value objects are immutable (frozen=True) and carry no infrastructure
dependencies, so the HTTP layer, the client and the engine can share them.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ArchiveRecord(BaseModel):
    """One archive listing: its identifier and the file paths it contains."""

    model_config = ConfigDict(frozen=True)

    name: str
    files: list[str] = Field(default_factory=list)


class SearchQuery(BaseModel):
    """A multi-term query with an optional score floor and result cap.

    ``max_length`` is accepted as an alias of ``max_results`` for older
    clients.
    """

    model_config = ConfigDict(frozen=True)

    terms: list[str] = Field(default_factory=list)
    min_score: float | None = 0.0
    max_results: int | None = Field(
        default=None,
        validation_alias=AliasChoices("max_results", "max_length"),
    )

    @field_validator("min_score", mode="before")
    @classmethod
    def _default_min_score(cls, value: object) -> object:
        return 0.0 if value is None else value


class SearchMatch(BaseModel):
    """A ranked document; serialized with the ``md5`` key on the wire."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(
        validation_alias=AliasChoices("document_id", "md5"),
        serialization_alias="md5",
    )
    score: float


class SearchResult(BaseModel):
    """Ranked matches plus the match count before truncation."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    matches: list[SearchMatch] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SearchResult":
        return cls(total=0, matches=[])

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
