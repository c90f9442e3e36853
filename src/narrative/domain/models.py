from __future__ import annotations

import time
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


AttachmentType = Literal["audio", "video", "image", "text", "pdf", "document", "other"]
AttachmentStatus = Literal["pending", "processing", "done", "error"]
Theme = Literal["light", "dark"]


def now_ms() -> int:
    return int(time.time() * 1000)


class CamelModel(BaseModel):
    """Base model that reads and writes the camelCase keys used by the UI and the store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SFLField(CamelModel):
    topic: str = ""
    task_type: str = ""
    domain_specifics: str = ""
    keywords: str = ""


class SFLTenor(CamelModel):
    ai_persona: str = "Helpful Assistant"
    target_audience: List[str] = Field(default_factory=list)
    desired_tone: str = "Neutral"
    interpersonal_stance: str = "Supportive"


class SFLMode(CamelModel):
    output_format: str = "Markdown"
    rhetorical_structure: str = "Standard"
    length_constraint: str = "Moderate"
    textual_directives: str = ""


class Attachment(CamelModel):
    id: str
    name: str
    type: AttachmentType = "other"
    mime_type: str = ""
    content: str = ""
    analysis: Optional[str] = None
    status: AttachmentStatus = "pending"
    error_message: Optional[str] = None


class PromptSFL(CamelModel):
    id: str
    title: str
    description: str = ""
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    sfl_field: SFLField = Field(default_factory=SFLField)
    sfl_tenor: SFLTenor = Field(default_factory=SFLTenor)
    sfl_mode: SFLMode = Field(default_factory=SFLMode)
    attachments: List[Attachment] = Field(default_factory=list)
    compiled_prompt: Optional[str] = None
    versions: Optional[List["PromptSFL"]] = None


class PromptDraft(CamelModel):
    """Editor state held by the presentation layer until the user saves."""

    title: str = "Untitled Narrative"
    goal: str = ""
    field: SFLField = Field(default_factory=SFLField)
    tenor: SFLTenor = Field(default_factory=SFLTenor)
    mode: SFLMode = Field(default_factory=SFLMode)
    attachments: List[Attachment] = Field(default_factory=list)


class GeneratedFramework(CamelModel):
    title: str = ""
    field: SFLField = Field(default_factory=SFLField)
    tenor: SFLTenor = Field(default_factory=SFLTenor)
    mode: SFLMode = Field(default_factory=SFLMode)


class StoreState(CamelModel):
    prompts: List[PromptSFL] = Field(default_factory=list)
    theme: Theme = "light"
    primary_model: str = "gemini-3-pro-preview"
    persona_model: str = "gemini-3-pro-preview"


class SettingsUpdate(CamelModel):
    theme: Optional[Theme] = None
    primary_model: Optional[str] = None
    persona_model: Optional[str] = None

