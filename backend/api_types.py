from typing import Any, Dict, Optional

from pydantic import BaseModel


class CompileOptions(BaseModel):
    strict: bool = False  # Reject node kinds the gamma evaluator cannot price
    include_report: bool = False  # Attach the Markdown gamma report


class CompileRequest(BaseModel):
    source_code: str
    options: CompileOptions = CompileOptions()


class GammaCharge(BaseModel):
    statement: str
    line: Optional[int] = None
    gamma: int


class CompileResponse(BaseModel):
    ast: Dict[str, Any]  # Sanitized and instrumented ESTree Program
    gamma_total: int
    charges: list[GammaCharge] = []
    warnings: list[str] = []
    errors: list[str] = []
    report: Optional[str] = None


class SanitizeRequest(BaseModel):
    source_code: str


class SanitizeResponse(BaseModel):
    ast: Dict[str, Any]


# Gamma Estimation API Types
class GammaEstimateRequest(BaseModel):
    source_code: str
    strict: bool = False


class GammaEstimateResponse(BaseModel):
    breakdown: list[GammaCharge]
    total_gamma: int
    warnings: list[str]
    report: str  # Markdown formatted report
