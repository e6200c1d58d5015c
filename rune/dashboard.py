"""
Sponsor dashboard and orchestration analytics.

Read-only summaries over the job tracker and the stores.
"""

from __future__ import annotations

from rune.jobs import JobKind, JobState
from rune.mapper import derive_dscr, derive_noi
from rune.models import DealStage
from rune.services import RuneServices

RECENT_EXTRACTIONS = 3
ACTIVITY_LIMIT = 10


def dashboard_summary(services: RuneServices) -> dict:
    """
    KPIs, deal pipeline, recent extractions, review flags and activity.

    Returns:
        Dict with keys kpis, pipeline, recentExtractions, flags, activity
    """
    deals = services.deals.list_all()
    extractions = services.extractions.list_all()

    pipeline = [
        {
            "id": deal.id,
            "name": deal.name,
            "stage": deal.stage.value,
            "dqi": deal.dqi,
            "target": deal.target,
            "progress": deal.progress,
        }
        for deal in deals
    ]

    recent_extractions = [
        {
            "doc": extraction.doc_id,
            "type": extraction.document.type,
            "noi": derive_noi(extraction.totals),
            "dscr": derive_dscr(extraction.totals),
            "status": "Complete",
        }
        for extraction in extractions[-RECENT_EXTRACTIONS:]
    ]

    flags = {
        "lowConfCount": sum(1 for e in extractions if e.is_low_confidence),
        "warnCount": sum(len(e.checks_with_status("warn")) for e in extractions),
        "failCount": sum(len(e.checks_with_status("fail")) for e in extractions),
    }

    active = [deal for deal in deals if deal.stage != DealStage.FUNDED]
    kpis = {
        "activeDeals": len(active),
        "pendingReviews": flags["lowConfCount"] + flags["warnCount"] + flags["failCount"],
        "avgDQI": round(sum(d.dqi for d in deals) / len(deals)) if deals else 0,
        "uploadedDocs": services.extractions.count(),
    }

    activity = [event.message for event in services.jobs.recent_events(ACTIVITY_LIMIT)]

    return {
        "kpis": kpis,
        "pipeline": pipeline,
        "recentExtractions": recent_extractions,
        "flags": flags,
        "activity": activity,
    }


def orchestration_analytics(services: RuneServices) -> dict:
    """Workflow, document and deal counts with success/processing rates."""
    workflows = services.jobs.count_by_state(JobKind.RUNE)
    total_workflows = sum(workflows.values())
    completed = workflows[JobState.COMPLETE.value]
    active = workflows[JobState.QUEUED.value] + workflows[JobState.PROCESSING.value]

    total_documents = services.jobs.count(JobKind.INTAKE)
    processed = services.extractions.count()
    total_deals = services.deals.count()

    return {
        "workflows": {
            "total": total_workflows,
            "completed": completed,
            "active": active,
            "failed": workflows[JobState.ERROR.value],
            "successRate": _percent(completed, total_workflows),
        },
        "documents": {
            "total": total_documents,
            "processed": processed,
            "processingRate": _percent(processed, total_documents),
        },
        "deals": {
            "total": total_deals,
            "automated": sum(1 for d in services.deals.list_all() if d.source_job_id),
        },
    }


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    # Placeholder documents have no intake job
    return min(100, round(part / whole * 100))
