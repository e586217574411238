from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import MAX_TEXT_LENGTH

VocabText = Annotated[str, Field(min_length=1, max_length=MAX_TEXT_LENGTH)]


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class VocabPair(BaseModel):
    """A source/target pair as found in seed files, uploads and request bodies.

    The legacy keys ``de`` and ``en`` are accepted as well.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    source_text: VocabText = Field(validation_alias=AliasChoices("source_text", "de"))
    target_text: VocabText = Field(validation_alias=AliasChoices("target_text", "en"))


def valid_pairs(items: Any) -> list[VocabPair]:
    """Keep the well-formed pairs of a decoded JSON array, drop the rest."""
    if not isinstance(items, list):
        return []

    pairs: list[VocabPair] = []
    for item in items:
        try:
            pairs.append(VocabPair.model_validate(item))
        except ValidationError:
            continue
    return pairs


class VocabCreateRequest(VocabPair):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)


class VocabUpdateRequest(VocabPair):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)


class VocabEntryItem(BaseModel):
    id: int
    lesson: str
    source_text: str
    target_text: str
    created_at: Optional[datetime] = None


class MutationResponse(BaseModel):
    success: bool = True
    id: Optional[int] = None
    updated: Optional[int] = None
    deleted: Optional[int] = None


class LessonItem(BaseModel):
    slug: str
    title: str
    description: Optional[str] = None
    entry_count: int


class LessonCreateResponse(BaseModel):
    success: bool = True
    lesson: LessonItem


class BackupLesson(BaseModel):
    model_config = ConfigDict(extra="ignore")

    slug: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    entry_count: int = 0
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _lenient_created_at(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)

    @field_validator("entry_count", mode="before")
    @classmethod
    def _default_entry_count(cls, value: Any) -> Any:
        return 0 if value is None else value


class BackupVocabulary(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    lesson: str = Field(min_length=1)
    source_text: str = Field(validation_alias=AliasChoices("source_text", "de"))
    target_text: str = Field(validation_alias=AliasChoices("target_text", "en"))
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _lenient_created_at(cls, value: Any) -> Optional[datetime]:
        return _parse_timestamp(value)


class BackupDocument(BaseModel):
    """Structural view of a snapshot; both collections are required."""

    model_config = ConfigDict(extra="ignore")

    lessons: list[BackupLesson]
    vocabulary: list[BackupVocabulary]


class ImportedCounts(BaseModel):
    lessons: int
    vocabulary: int


class ImportResponse(BaseModel):
    success: bool = True
    imported: ImportedCounts


class InitResultResponse(BaseModel):
    state: str
    source: Optional[str] = None
    vocabulary_count: int
