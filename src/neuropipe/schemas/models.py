from __future__ import annotations
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field


class ProcessDocument(BaseModel):
    # One process as written in a text-encoded pipeline (no backend info)
    name: str
    family: Optional[str] = None
    function_name: Optional[str] = None
    date: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    documentation: str = ''
    history: List[List[Any]] = Field(default_factory=list)


class PipelineDocument(BaseModel):
    # Text encoding of a pipeline; history is the flattened, transposed table
    schema_version: str = Field(default='0.1.0')
    name: Optional[str] = None
    folder: Optional[str] = None
    extension: Optional[str] = None
    date: Optional[str] = None
    family: Optional[str] = None
    processes: List[ProcessDocument] = Field(default_factory=list)
    history: List[Any] = Field(default_factory=list)
    # row width of the table before flattening; None in older documents
    history_width: Optional[int] = None
    documentation: str = ''
