"""FastAPI application for template management and data uploads"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, UploadFile, File, Form, Depends, HTTPException, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.encoders import jsonable_encoder

from core.exceptions import (
    BatchNotFound,
    ConflictError,
    DatabaseError,
    EmployeeNotFound,
    EmptySpreadsheet,
    InvalidAddress,
    MalformedSpreadsheet,
    MissingEmployeeIdColumn,
    PlantillaError,
    StageError,
    TemplateNotFound,
    ValidationFailed,
)
from core.models import DownloadPayload
from orchestrator import Orchestrator
from utils.uploads import save_upload
from config import settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Plantilla API",
    description="Spreadsheet template extraction and employee data uploads",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first; the first match wins
ERROR_STATUS = (
    (TemplateNotFound, 404),
    (BatchNotFound, 404),
    (EmployeeNotFound, 404),
    (ConflictError, 409),
    (DatabaseError, 500),
    (ValidationFailed, 400),
    (MalformedSpreadsheet, 400),
    (EmptySpreadsheet, 400),
    (InvalidAddress, 400),
    (MissingEmployeeIdColumn, 400),
    (StageError, 400),
)


def status_for(error: PlantillaError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


@app.exception_handler(PlantillaError)
async def plantilla_error_handler(request: Request, exc: PlantillaError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc)

    body = {"success": False, "message": str(exc)}
    if isinstance(exc, ValidationFailed):
        body["errors"] = exc.errors
        body["warnings"] = exc.warnings
    return JSONResponse(status_code=status_code, content=body)


def get_orchestrator() -> Orchestrator:
    """Orchestrator over the Postgres stores; tests override this dependency"""
    from db import (
        DatabaseManager,
        PostgresEmployeeDirectory,
        PostgresTemplateStore,
        PostgresUploadedRowStore,
    )

    db_manager = DatabaseManager(settings.DATABASE_URL)
    return Orchestrator(
        templates=PostgresTemplateStore(db_manager),
        uploads=PostgresUploadedRowStore(db_manager),
        employees=PostgresEmployeeDirectory(db_manager),
    )


async def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity forwarded by the authenticating gateway"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()


def ok(data=None, message: str = "OK", status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "message": message, "data": jsonable_encoder(data)},
    )


def content_disposition(file_name: str) -> str:
    """Attachment header with an ASCII fallback and an RFC 5987 UTF-8 name"""
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"


def download(payload: DownloadPayload) -> Response:
    return Response(
        content=payload.content,
        media_type=payload.content_type,
        headers={"Content-Disposition": content_disposition(payload.file_name)},
    )


async def store_upload(file: Optional[UploadFile]) -> tuple:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    content = await file.read()
    path = save_upload(content, settings.get_upload_path(), file.filename)
    return path, file.filename


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# ─────────────────────────────────────────────────────────────
# Template endpoints
# ─────────────────────────────────────────────────────────────

@app.post("/api/excel/uploadHeaderExcel")
async def upload_header_excel(
    file: Optional[UploadFile] = File(None),
    templateName: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """Extract a template from a reference workbook"""
    path, file_name = await store_upload(file)
    logger.info("Template upload %s by %s", file_name, user)
    created = await orchestrator.create_template(
        path, template_name=templateName, description=description, file_name=file_name
    )
    return ok(created.model_dump(), "Header Excel uploaded successfully", status_code=201)


@app.get("/api/excel/template")
async def get_header_template(
    templateName: Optional[str] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    template = await orchestrator.get_template(templateName)
    return ok(template.to_dict(), "Template retrieved successfully")


@app.get("/api/excel/templates")
async def get_all_templates(orchestrator: Orchestrator = Depends(get_orchestrator)):
    templates = await orchestrator.list_templates()
    return ok([t.model_dump() for t in templates], "Templates list retrieved successfully")


@app.get("/api/excel/template/id/{template_id}")
async def get_template_by_id(
    template_id: int,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    template = await orchestrator.get_template_by_id(template_id)
    return ok(template.to_dict(), "Template retrieved successfully")


@app.get("/api/excel/template/{template_name}")
async def get_template_by_name(
    template_name: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    template = await orchestrator.get_template_by_name(template_name)
    return ok(template.to_dict(), "Template retrieved successfully")


@app.get("/api/excel/download/{template_id}")
async def download_template_file(
    template_id: int,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    return download(await orchestrator.download_template(template_id))


@app.delete("/api/excel/template/{template_id}")
async def delete_template(
    template_id: int,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    await orchestrator.delete_template(template_id)
    logger.info("Template %s deleted by %s", template_id, user)
    return ok({"template_id": template_id}, "Template deleted successfully")


# ─────────────────────────────────────────────────────────────
# Data filling endpoints
# ─────────────────────────────────────────────────────────────

@app.get("/api/data/templates")
async def get_templates_for_selection(
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    templates = await orchestrator.list_templates()
    return ok([t.model_dump() for t in templates], "Templates retrieved successfully")


@app.get("/api/data/template/{template_id}/preview")
async def get_template_preview(
    template_id: int,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    template = await orchestrator.get_template_preview(template_id)
    return ok(template.to_dict(), "Template preview retrieved successfully")


@app.get("/api/data/download/{template_id}")
async def download_template(
    template_id: int,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    return download(await orchestrator.download_template(template_id))


@app.post("/api/data/validate")
async def validate_uploaded_file(
    file: Optional[UploadFile] = File(None),
    templateId: Optional[int] = Form(None),
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    if templateId is None:
        raise HTTPException(status_code=400, detail="Template ID is required")
    path, file_name = await store_upload(file)
    report = await orchestrator.validate_upload(path, templateId, file_name=file_name)
    return ok(report.model_dump(), "File validated successfully")


@app.post("/api/data/upload")
async def upload_filled_data(
    file: Optional[UploadFile] = File(None),
    templateId: Optional[int] = Form(None),
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    if templateId is None:
        raise HTTPException(status_code=400, detail="Template ID is required")
    path, file_name = await store_upload(file)
    result = await orchestrator.upload_filled_data(
        path, templateId, uploaded_by=user, file_name=file_name
    )
    return ok(result.model_dump(), "Data uploaded successfully", status_code=201)


@app.get("/api/data/history")
async def get_upload_history(
    limit: Optional[int] = None,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    history = await orchestrator.get_upload_history(limit)
    return ok([b.model_dump() for b in history], "Upload history retrieved successfully")


@app.get("/api/data/summary")
async def get_data_summary(
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    summary = await orchestrator.get_data_summary()
    return ok(summary.model_dump(), "Data summary retrieved successfully")


@app.get("/api/data/employee/{employee_id}")
async def get_data_by_employee(
    employee_id: str,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    rows = await orchestrator.get_data_by_employee(employee_id)
    return ok([r.model_dump() for r in rows], "Employee data retrieved successfully")


@app.get("/api/data/batch/{batch_id}")
async def get_data_by_batch(
    batch_id: str,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    rows = await orchestrator.get_data_by_batch(batch_id)
    return ok([r.model_dump() for r in rows], "Batch data retrieved successfully")


@app.get("/api/data/batch/{batch_id}/calculations")
async def get_uploaded_data_with_calculations(
    batch_id: str,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    calculations = await orchestrator.get_uploaded_data_with_calculations(batch_id)
    return ok(calculations.model_dump(), "Batch calculations retrieved successfully")


@app.get("/api/data/batch/{batch_id}/export")
async def export_batch(
    batch_id: str,
    user: str = Depends(get_current_user),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    return download(await orchestrator.export_batch(batch_id))
