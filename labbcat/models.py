from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


class LabbcatModel(BaseModel):
    """Base for value objects exchanged with the server.

    Field names are snake_case; aliases carry the server's JSON keys.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]):
        return cls.model_validate(obj)

    def to_json(self) -> Dict[str, Any]:
        """Serialize with server keys, omitting unset (None) fields."""

        return self.model_dump(by_alias=True, exclude_none=True)


class _OpenModel(LabbcatModel):
    """Graph-store objects whose schema belongs to the server; unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class TaskStatus(LabbcatModel):
    """Status of a long-running server task (search, upload, layer generation...)."""

    thread_id: Optional[str] = Field(default=None, alias="threadId")
    thread_name: Optional[str] = Field(default=None, alias="threadName")
    running: bool = False
    duration: int = 0
    percent_complete: int = Field(default=0, alias="percentComplete")
    status: Optional[str] = None
    refresh_seconds: int = Field(default=0, alias="refreshSeconds")
    result_url: Optional[str] = Field(default=None, alias="resultUrl")
    result_text: Optional[str] = Field(default=None, alias="resultText")
    log: Optional[str] = None

    @field_validator("thread_id", "log", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        # thread ids arrive as numbers from some server versions
        return None if v is None else str(v)

    @field_validator("duration", "percent_complete", "refresh_seconds", mode="before")
    @classmethod
    def _whole_number(cls, v: Any) -> int:
        return 0 if v is None else int(float(v))

    def __str__(self) -> str:
        state = "running...)" if self.running else "finished.)"
        url = "" if self.result_url is None else f" {self.result_url}"
        return (
            f"threadId: {self.thread_id} ({self.thread_name}) status: {self.status}"
            f" ({self.percent_complete}% {state}{url}"
        )


@dataclass
class MatchId:
    """Components of a search-result MatchId.

    A MatchId looks like
    ``g_6;em_12_20035;n_72700-n_72702;p_4;#=ew_0_12611;prefix=001-``: the
    transcript id comes first, then ``;``-separated parts, one of which is the
    interval (either two anchor ids or two offsets).
    """

    graph_id: str
    start_anchor_id: Optional[str] = None
    end_anchor_id: Optional[str] = None
    start_offset: Optional[float] = None
    end_offset: Optional[float] = None
    utterance_id: Optional[str] = None
    target_id: Optional[str] = None
    prefix: Optional[str] = None

    @classmethod
    def parse(cls, match_id: str) -> "MatchId":
        parts = match_id.split(";")
        result = cls(graph_id=parts[0])

        interval = next((p for p in parts[1:] if p.find("-") > 0), None)
        if interval is None:
            raise ValueError(f"no interval in MatchId: {match_id}")
        start, end = interval.split("-", 1)
        if start.startswith("n_"):
            result.start_anchor_id = start
            result.end_anchor_id = end
        else:
            result.start_offset = float(start)
            result.end_offset = float(end)

        for part in parts[1:]:
            if part.startswith("prefix="):
                result.prefix = part[len("prefix=") :]
            elif part.startswith("em_") or part.startswith("m_"):
                result.utterance_id = part
            elif part.startswith("#="):
                result.target_id = part[len("#=") :]
        return result


class Match(LabbcatModel):
    """One search result."""

    match_id: str = Field(alias="MatchId")
    transcript: Optional[str] = Field(default=None, alias="Transcript")
    participant: Optional[str] = Field(default=None, alias="Participant")
    corpus: Optional[str] = Field(default=None, alias="Corpus")
    line: Optional[float] = Field(default=None, alias="Line")
    line_end: Optional[float] = Field(default=None, alias="LineEnd")
    before_match: Optional[str] = Field(default=None, alias="BeforeMatch")
    text: Optional[str] = Field(default=None, alias="Text")
    after_match: Optional[str] = Field(default=None, alias="AfterMatch")

    def parsed_id(self) -> MatchId:
        return MatchId.parse(self.match_id)

    def __str__(self) -> str:
        return f"{self.match_id}: [{self.before_match}] {self.text} [{self.after_match}]"


class User(LabbcatModel):
    user: str
    email: Optional[str] = None
    reset_password: Optional[bool] = Field(default=None, alias="resetPassword")
    roles: List[str] = Field(default_factory=list)

    @field_validator("reset_password", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> Optional[bool]:
        if v is None or isinstance(v, bool):
            return v
        return int(v) != 0

    @field_serializer("reset_password")
    def _flag_out(self, v: Optional[bool]) -> Optional[int]:
        # the server stores this as a 0/1 column
        return None if v is None else (1 if v else 0)


class Corpus(LabbcatModel):
    corpus_id: Optional[int] = None
    name: Optional[str] = Field(default=None, alias="corpus_name")
    language: Optional[str] = Field(default=None, alias="corpus_language")
    description: Optional[str] = Field(default=None, alias="corpus_description")


class Project(LabbcatModel):
    project_id: Optional[int] = None
    project: Optional[str] = None
    description: Optional[str] = None


class MediaTrack(LabbcatModel):
    suffix: str
    description: Optional[str] = None
    display_order: int = 0


class Role(LabbcatModel):
    role_id: str
    description: Optional[str] = None


class RolePermission(LabbcatModel):
    """Access to transcripts for a role, keyed on a transcript attribute.

    The server stores the bare attribute name; clients see the layer id,
    which is the attribute name prefixed with ``transcript_``.
    """

    role_id: str
    entity: str
    layer_id: Optional[str] = None
    value_pattern: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_attribute_name(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and "attribute_name" in data:
            data = dict(data)
            name = data.pop("attribute_name")
            data.setdefault("layer_id", None if name is None else f"transcript_{name}")
        return data

    def to_json(self) -> Dict[str, Any]:
        attribute = None
        if self.layer_id is not None:
            attribute = self.layer_id[len("transcript_") :] if self.layer_id.startswith(
                "transcript_"
            ) else self.layer_id
        out = {
            "role_id": self.role_id,
            "entity": self.entity,
            "attribute_name": attribute,
            "value_pattern": self.value_pattern,
        }
        return {k: v for k, v in out.items() if v is not None}


class SystemAttribute(LabbcatModel):
    attribute: str
    type: Optional[str] = None
    style: Optional[str] = None
    label: Optional[str] = None
    description: Optional[str] = None
    options: Dict[str, str] = Field(default_factory=dict)
    value: Optional[str] = None


class Category(LabbcatModel):
    class_id: str
    category: str
    description: Optional[str] = None
    display_order: Optional[int] = None


class UploadParameter(_OpenModel):
    """A setting the server needs before it will process an uploaded transcript."""

    name: str
    label: Optional[str] = None
    hint: Optional[str] = None
    type: Optional[str] = None
    value: Any = None
    required: Optional[bool] = None
    possible_values: Any = Field(default=None, alias="possibleValues")


class Upload(LabbcatModel):
    """A transcript upload in progress.

    ``transcripts`` maps each transcript file name to the id of the task
    that is processing it.
    """

    id: Optional[str] = None
    parameters: List[UploadParameter] = Field(default_factory=list)
    transcripts: Dict[str, str] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("transcripts", mode="before")
    @classmethod
    def _thread_ids(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, Mapping):
            return {str(k): str(t) for k, t in v.items()}
        return v

    def parameter(self, name: str) -> Optional[UploadParameter]:
        for p in self.parameters:
            if p.name == name:
                return p
        return None

    def set_parameter_value(self, name: str, value: Any) -> bool:
        """Set a parameter value if the server asked for it; returns whether it did."""

        p = self.parameter(name)
        if p is None:
            return False
        p.value = value
        return True


class Layer(_OpenModel):
    id: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    description: Optional[str] = None
    alignment: Optional[int] = None
    peers: Optional[bool] = None
    peers_overlap: Optional[bool] = Field(default=None, alias="peersOverlap")
    parent_includes: Optional[bool] = Field(default=None, alias="parentIncludes")
    saturated: Optional[bool] = None
    type: Optional[str] = None
    valid_labels: Optional[Dict[str, Any]] = Field(default=None, alias="validLabels")
    category: Optional[str] = None


class Annotation(_OpenModel):
    id: Optional[str] = None
    layer_id: Optional[str] = Field(default=None, alias="layerId")
    label: Optional[str] = None
    start_id: Optional[str] = Field(default=None, alias="startId")
    end_id: Optional[str] = Field(default=None, alias="endId")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    ordinal: Optional[int] = None
    confidence: Optional[int] = None
    annotator: Optional[str] = None


class Anchor(_OpenModel):
    id: Optional[str] = None
    offset: Optional[float] = None
    confidence: Optional[int] = None


class MediaFile(_OpenModel):
    name: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    url: Optional[str] = None
    track_suffix: Optional[str] = Field(default=None, alias="trackSuffix")
    type: Optional[str] = None


class MediaTrackDefinition(_OpenModel):
    suffix: Optional[str] = None
    description: Optional[str] = None


class SerializationDescriptor(_OpenModel):
    name: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    version: Optional[str] = None
    file_suffixes: List[str] = Field(default_factory=list, alias="fileSuffixes")


class AnnotatorDescriptor(_OpenModel):
    annotator_id: Optional[str] = Field(default=None, alias="annotatorId")
    version: Optional[str] = None
    info: Optional[str] = None
