"""
Pipeline Routes - Document Intake, Job Polling, RUNE Orchestration, Deals

Routes:
- POST /documents/upload: Raw intake, returns {job_id}
- GET /jobs/{job_id}/status: Poll a raw intake job
- GET /documents/{doc_id}/entities: Stored extraction
- POST /documents/{doc_id}/corrections: Record reviewer corrections
- GET /documents/{doc_id}/corrections: List recorded corrections
- GET /documents/{doc_id}/proof.pdf: Extraction proof report
- GET /documents/{doc_id}/audit.zip: Audit bundle
- POST /rune/intake: Full pipeline, returns {rune_job_id}
- GET /rune/jobs/{rune_job_id}: Poll a RUNE job
- GET /deals, GET /deals/{deal_id}: Created deals
- GET /me/dashboard, GET /analytics/orchestration: Summaries

Store misses raise NotFoundError and upload rejections raise ValidationError;
both are turned into JSON responses by the app's exception handlers.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from rune.dashboard import dashboard_summary, orchestration_analytics
from rune.errors import NotFoundError
from rune.intake.extractors import SampleExtractor
from rune.intake.validation import UploadedDocument
from rune.jobs import JobKind
from rune.mapper import map_extraction
from rune.models import DEFAULT_DOCUMENT_TYPE, Extraction
from rune.scoring import DQIScorer
from rune.services import RuneServices
from reporting import ProofReportGenerator, build_audit_bundle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pipeline"])


# =============================================================================
# Request Models
# =============================================================================


class FieldCorrection(BaseModel):
    """A corrected value for one extraction field, addressed by dotted path."""
    path: str = Field(..., min_length=1, examples=["totals.noi"])
    value: Any = None
    note: Optional[str] = None


class CorrectionRequest(BaseModel):
    corrections: List[FieldCorrection] = Field(..., min_length=1)
    submitted_by: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================


def get_services(request: Request) -> RuneServices:
    """Service container attached to the app at creation."""
    return request.app.state.services


async def read_upload(
    file: Optional[UploadFile],
    document_type: Optional[str] = None,
) -> Optional[UploadedDocument]:
    """Read a multipart upload into an UploadedDocument (None if no file was sent)."""
    if file is None:
        return None
    content = await file.read()
    return UploadedDocument(
        filename=file.filename or "",
        content=content,
        content_type=file.content_type,
        document_type=DEFAULT_DOCUMENT_TYPE if document_type is None else document_type,
    )


def resolve_extraction(services: RuneServices, doc_id: str) -> Extraction:
    """
    Stored extraction for doc_id.

    Unknown ids get a sample placeholder when enabled, unless an intake job
    is still working on that id.

    Raises:
        NotFoundError: If absent and no placeholder may be created
    """
    extraction = services.extractions.find(doc_id)
    if extraction is not None:
        return extraction

    pending = services.jobs.find_by_doc_id(doc_id)
    if pending is not None and not pending.is_terminal:
        raise NotFoundError("document", doc_id)
    if not services.config.allow_placeholder_entities:
        raise NotFoundError("document", doc_id)

    logger.warning("No extraction for %s, serving sample placeholder", doc_id)
    return services.extractions.put(doc_id, SampleExtractor().build(doc_id))


def require_extraction(services: RuneServices, doc_id: str) -> Extraction:
    """Stored extraction for doc_id; never creates a placeholder."""
    return services.extractions.get(doc_id)


# =============================================================================
# Raw Intake
# =============================================================================


@router.post("/documents/upload")
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(None),
    document_type: str = Form(DEFAULT_DOCUMENT_TYPE),
    services: RuneServices = Depends(get_services),
):
    """Accept a document and start extraction in the background."""
    document = await read_upload(file, document_type)
    job = services.intake.submit(document)
    background_tasks.add_task(services.intake.process, job.job_id, document)
    return {"job_id": job.job_id}


@router.get("/jobs/{job_id}/status")
async def job_status(job_id: str, services: RuneServices = Depends(get_services)):
    """Poll a raw intake job; non-terminal polls advance the progress estimate."""
    if services.jobs.get(job_id).kind != JobKind.INTAKE:
        # RUNE progress only mirrors its intake job
        raise NotFoundError("job", job_id)
    job = services.jobs.nudge_progress(job_id)
    return job.to_status_dict()


# =============================================================================
# Documents
# =============================================================================


@router.get("/documents/{doc_id}/entities")
async def document_entities(doc_id: str, services: RuneServices = Depends(get_services)):
    return resolve_extraction(services, doc_id).to_dict()


@router.post("/documents/{doc_id}/corrections")
async def submit_corrections(
    doc_id: str,
    request_data: CorrectionRequest,
    services: RuneServices = Depends(get_services),
):
    """Record reviewer corrections. The stored extraction is not modified."""
    require_extraction(services, doc_id)

    records = [
        services.corrections.add(
            doc_id,
            path=correction.path,
            value=correction.value,
            note=correction.note,
            submitted_by=request_data.submitted_by,
        )
        for correction in request_data.corrections
    ]
    logger.info("Recorded %d correction(s) for %s", len(records), doc_id)
    return {
        "ok": True,
        "doc_id": doc_id,
        "corrections": [record.to_dict() for record in records],
    }


@router.get("/documents/{doc_id}/corrections")
async def list_corrections(doc_id: str, services: RuneServices = Depends(get_services)):
    require_extraction(services, doc_id)
    return {
        "doc_id": doc_id,
        "corrections": [record.to_dict() for record in services.corrections.list_for(doc_id)],
    }


@router.get("/documents/{doc_id}/proof.pdf")
async def proof_pdf(doc_id: str, services: RuneServices = Depends(get_services)):
    """Render the extraction proof report."""
    extraction = require_extraction(services, doc_id)
    pdf_bytes = ProofReportGenerator().generate_to_buffer(
        extraction,
        map_extraction(extraction),
        DQIScorer().score(extraction),
        services.corrections.list_for(doc_id),
    )
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{doc_id}-proof.pdf"'},
    )


@router.get("/documents/{doc_id}/audit.zip")
async def audit_bundle(doc_id: str, services: RuneServices = Depends(get_services)):
    """Zip of extraction, mapped metrics, DQI breakdown, corrections and proof PDF."""
    extraction = require_extraction(services, doc_id)
    mapped = map_extraction(extraction)
    breakdown = DQIScorer().score(extraction)
    corrections = services.corrections.list_for(doc_id)

    pdf_bytes = ProofReportGenerator().generate_to_buffer(extraction, mapped, breakdown, corrections)
    zip_bytes = build_audit_bundle(extraction, mapped, breakdown, pdf_bytes, corrections)
    return Response(
        content=zip_bytes,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{doc_id}-audit.zip"'},
    )


# =============================================================================
# RUNE Orchestration
# =============================================================================


@router.post("/rune/intake")
async def rune_intake(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(None),
    deal_name: Optional[str] = Form(None),
    document_type: str = Form(DEFAULT_DOCUMENT_TYPE),
    services: RuneServices = Depends(get_services),
):
    """Start the full pipeline; poll /rune/jobs/{rune_job_id} for the result."""
    document = await read_upload(file, document_type)
    job = services.pipeline.start(document, deal_name)
    background_tasks.add_task(services.pipeline.run, job.job_id, document, deal_name)
    return {"rune_job_id": job.job_id}


@router.get("/rune/jobs/{rune_job_id}")
async def rune_job_status(rune_job_id: str, services: RuneServices = Depends(get_services)):
    job = services.jobs.get(rune_job_id)
    if job.kind != JobKind.RUNE:
        raise NotFoundError("rune job", rune_job_id)
    return job.to_rune_dict()


# =============================================================================
# Deals & Summaries
# =============================================================================


@router.get("/deals")
async def list_deals(services: RuneServices = Depends(get_services)):
    return [deal.to_dict() for deal in services.deals.list_all()]


@router.get("/deals/{deal_id}")
async def get_deal(deal_id: str, services: RuneServices = Depends(get_services)):
    return services.deals.get(deal_id).to_dict()


@router.get("/me/dashboard")
async def dashboard(services: RuneServices = Depends(get_services)):
    return dashboard_summary(services)


@router.get("/analytics/orchestration")
async def analytics(services: RuneServices = Depends(get_services)):
    return {"success": True, "analytics": orchestration_analytics(services)}
