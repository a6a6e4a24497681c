"""
Raw access to stored dashboard documents (indicators, data queries, data sources).
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, status

from idvt.api.deps import document_store
from idvt.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/documents/{namespace}", response_model=List[Dict[str, Any]])
async def list_documents(namespace: str, store: DocumentStore = Depends(document_store)):
    """List every document in a namespace"""
    return await store.list(namespace)


@router.get("/documents/{namespace}/{document_id}", response_model=Dict[str, Any])
async def get_document(
    namespace: str,
    document_id: str,
    store: DocumentStore = Depends(document_store),
):
    document = await store.get(namespace, document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{namespace}/{document_id} not found",
        )
    return document


@router.put("/documents/{namespace}/{document_id}")
async def put_document(
    namespace: str,
    document_id: str,
    document: Dict[str, Any] = Body(...),
    store: DocumentStore = Depends(document_store),
):
    """Create or replace a document"""
    await store.put(namespace, document_id, document)
    logger.info("Stored %s/%s", namespace, document_id)
    return {"id": document_id, "namespace": namespace}


@router.delete("/documents/{namespace}/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    namespace: str,
    document_id: str,
    store: DocumentStore = Depends(document_store),
):
    await store.delete(namespace, document_id)
    logger.info("Deleted %s/%s", namespace, document_id)
