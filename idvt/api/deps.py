"""
Shared route dependencies. Services that need the host DHIS2 instance answer
503 when it is not configured.
"""
from fastapi import Depends, HTTPException, status

from idvt.db.dhis2 import Dhis2Client, require_dhis2
from idvt.services.document_store import DocumentStore, get_document_store
from idvt.services.pipeline import (
    RefreshScheduler,
    VisualizationPipeline,
    get_pipeline,
    get_scheduler,
)


def _unavailable(e: RuntimeError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def dhis2_client() -> Dhis2Client:
    try:
        return require_dhis2()
    except RuntimeError as e:
        raise _unavailable(e)


def document_store() -> DocumentStore:
    try:
        return get_document_store()
    except RuntimeError as e:
        raise _unavailable(e)


def pipeline() -> VisualizationPipeline:
    try:
        return get_pipeline()
    except RuntimeError as e:
        raise _unavailable(e)


def scheduler(current: VisualizationPipeline = Depends(pipeline)) -> RefreshScheduler:
    return get_scheduler(current)
