from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    spec_id: int = Field(..., description="Spec whose PMS lines are expanded")
    project_id: Optional[int] = Field(None, description="Project whose overrides apply; null = defaults only")
    include_weight: bool = Field(False, description="Attach cached unit weights (0.00 when absent)")


class LoadRequest(BaseModel):
    project_id: int


class UpdateUnitWeightRequest(BaseModel):
    item_code: str = Field(..., min_length=1)
    # Accepts "12.5" or 12.5; normalized to a two-decimal string
    unit_weight: Union[str, float]


class GeneratedItemOut(BaseModel):
    """One synthesized item as returned by /generate."""
    model_config = ConfigDict(from_attributes=True)

    spec: str
    comp_type: str
    short_code: str = ""
    item_code: str
    client_item_code: str
    item_long_desc: str
    item_short_desc: str
    size1_inch: str
    size2_inch: str
    size1_mm: str
    size2_mm: str
    sch1: str
    sch2: str
    rating: str
    g_type: str = ""
    s_type: str = ""
    skey: str = ""
    catref: str = ""
    unit_weight: Optional[str] = None
    valv_sub_type: str = ""
    construction_desc: str = ""


class LineDiagnosticOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pms_line_id: int
    sort_order: int
    stream: str
    reason: str
    missing: List[str] = []


class GenerateResponse(BaseModel):
    success: bool
    message: str = ""
    data: List[GeneratedItemOut] = []
    diagnostics: List[LineDiagnosticOut] = []


class LoadResponse(BaseModel):
    success: bool
    message: str
    specs: int
    generated: int
    inserted: int


class ReviewOutputOut(BaseModel):
    """A cached review-output row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    spec: Optional[str] = None
    comp_type: Optional[str] = None
    short_code: Optional[str] = None
    item_code: str
    client_item_code: Optional[str] = None
    item_long_desc: Optional[str] = None
    item_short_desc: Optional[str] = None
    size1_inch: Optional[str] = None
    size1_mm: Optional[str] = None
    size2_inch: Optional[str] = None
    size2_mm: Optional[str] = None
    sch_1: Optional[str] = None
    sch_2: Optional[str] = None
    rating: Optional[str] = None
    unit_weight: Optional[str] = None
    g_type: Optional[str] = None
    s_type: Optional[str] = None
    skey: Optional[str] = None
    catref: Optional[str] = None
    updated_at: Optional[datetime] = None


class UpdateUnitWeightResponse(BaseModel):
    success: bool
    message: str
    data: ReviewOutputOut


class FilterResponse(BaseModel):
    success: bool
    total: int
    data: List[ReviewOutputOut]
