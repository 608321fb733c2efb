from __future__ import annotations

import os
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_REGISTRY_PATH = os.path.join("citations", "citation-registry.json")


class CitationRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hex_id: str = Field(..., alias="hexId", description="Canonical lowercase hex identifier")
    source_text: Optional[str] = Field(default=None, alias="sourceText")
    source_url: Optional[str] = Field(default=None, alias="sourceUrl")
    source_title: Optional[str] = Field(default=None, alias="sourceTitle")
    source_author: Optional[str] = Field(default=None, alias="sourceAuthor")
    date_created: str = Field(..., alias="dateCreated", description="ISO 8601 UTC timestamp")
    date_updated: str = Field(..., alias="dateUpdated", description="ISO 8601 UTC timestamp")
    files: List[str] = Field(default_factory=list, description="Documents referencing this citation")


class CitationConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    registry_path: str = Field(default=DEFAULT_REGISTRY_PATH, alias="registryPath")
    hex_length: int = Field(default=6, alias="hexLength", ge=1, le=32)
    footnotes_section_header: str = Field(default="# Footnotes", alias="footnotesSectionHeader", min_length=1)
    footnotes_section_separator: str = Field(default="***", alias="footnotesSectionSeparator")

    @classmethod
    def from_env(cls, **overrides) -> "CitationConfig":
        """Build a config from CITATION_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        env_map = {
            "registry_path": "CITATION_REGISTRY_PATH",
            "hex_length": "CITATION_HEX_LENGTH",
            "footnotes_section_header": "CITATION_FOOTNOTES_HEADER",
            "footnotes_section_separator": "CITATION_FOOTNOTES_SEPARATOR",
        }
        values = {}
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name, "").strip()
            if raw:
                values[field_name] = raw
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        return cls.model_validate(values)


class CodeSpan(BaseModel):
    placeholder: str
    original: str
    kind: Literal["fenced", "indented", "inline"]


class ConversionStats(BaseModel):
    numeric_citations_found: int = 0
    existing_hex_citations: int = 0
    conversions_performed: int = 0


class ProcessingStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    citations_converted: int = Field(default=0, alias="citationsConverted")
    footnotes_added: int = Field(default=0, alias="footnotesAdded")
    footnote_section_added: bool = Field(default=False, alias="footnoteSectionAdded")


class ProcessingResult(BaseModel):
    updated_content: str
    changed: bool
    stats: ProcessingStats
