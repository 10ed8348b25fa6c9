# backend/main.py
from typing import NoReturn

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api_types import (
    CompileRequest,
    CompileResponse,
    GammaEstimateRequest,
    GammaEstimateResponse,
    SanitizeRequest,
    SanitizeResponse,
)
from compile_service import compile_contract, dump_compilation, estimate_gamma, format_report, sanitize_source
from config import VERSION, configure_logger, get_settings
from contract_errors import ContractRejectedError, SourceTooLargeError

logger = configure_logger(__name__)

app = FastAPI()

# Add CORS middleware to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
    expose_headers=["Content-Length"],
    max_age=600,
)


def require_source(source_code: str) -> None:
    if not source_code.strip():
        raise HTTPException(status_code=400, detail="Please provide contract code to compile.")


def reject(error: ContractRejectedError) -> NoReturn:
    logger.warning(f"Contract rejected: {error}")
    if isinstance(error, SourceTooLargeError):
        raise HTTPException(status_code=413, detail={"message": "Contract source too large.", "errors": [str(error)]})
    raise HTTPException(status_code=422, detail={"message": "Contract rejected.", "errors": [str(error)]})


# Endpoints are sync so each compilation runs on FastAPI's thread pool
@app.post("/api/compile", response_model=CompileResponse)
def compile_code(request: CompileRequest):
    """
    Sanitizes a contract and instruments it with gamma charges.
    """
    require_source(request.source_code)

    try:
        result = compile_contract(request.source_code, request.options)
    except ContractRejectedError as e:
        reject(e)

    dump_compilation(request.source_code, request.options, result, get_settings().dump_dir)

    return CompileResponse(
        ast=result.ast,
        gamma_total=result.gamma_total,
        charges=result.charges.to_dict(),
        warnings=result.warnings,
        errors=[],
        report=format_report(result) if request.options.include_report else None,
    )


@app.post("/api/sanitize", response_model=SanitizeResponse)
def sanitize_code(request: SanitizeRequest):
    """
    Sanitizes a contract without instrumenting it.
    """
    require_source(request.source_code)

    try:
        tree = sanitize_source(request.source_code)
    except ContractRejectedError as e:
        reject(e)

    return SanitizeResponse(ast=tree)


@app.post("/api/gamma", response_model=GammaEstimateResponse)
def estimate_contract_gamma(request: GammaEstimateRequest):
    """
    Estimates the gamma a contract is charged, statement by statement.
    """
    require_source(request.source_code)

    try:
        estimate = estimate_gamma(request.source_code, strict=request.strict)
    except ContractRejectedError as e:
        reject(e)

    return GammaEstimateResponse(**estimate)


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.
    """
    return {"status": "ok", "version": VERSION}
