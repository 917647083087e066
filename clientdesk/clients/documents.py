from typing import List, Optional

from .base import ApiClient
from ..schemas import Document, DocumentDownload, DocumentSource, StatusResponse


async def list_project_documents(
    api: ApiClient, project_id: str, source: Optional[DocumentSource] = None,
) -> List[Document]:
    params = {"source": source.value} if source else None
    data = await api.get(f"/documents/{project_id}", params=params)
    return [Document.model_validate(d) for d in data or []]


async def upload_document(
    api: ApiClient, project_id: str, filename: str, content: bytes, content_type: str,
) -> Document:
    files = {"file": (filename, content, content_type or "application/octet-stream")}
    return Document.model_validate(await api.post(f"/documents/{project_id}", files=files))


async def delete_document(api: ApiClient, document_id: str) -> StatusResponse:
    data = await api.delete(f"/documents/{document_id}")
    return StatusResponse.model_validate(data or {"status": "deleted"})


async def get_document_download(api: ApiClient, document_id: str) -> DocumentDownload:
    return DocumentDownload.model_validate(await api.get(f"/documents/{document_id}/download"))
