"""
shopemx/api/documents.py — Фото документа, удостоверяющего личность.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from shopemx.dependencies import get_current_user
from shopemx.models.user import UserRead
from shopemx.services import profile_service

router = APIRouter(tags=["documents"])


@router.post("/upload-document", summary="Загрузить фото документа")
async def upload_document(
    file: UploadFile = File(...),
    user: UserRead = Depends(get_current_user),
):
    data = await file.read()
    url = await profile_service.upload_document(
        user, file.filename or "", file.content_type or "", data
    )
    return {"message": "Document uploaded", "url": url}


@router.get("/get-document", summary="Ссылка на загруженный документ")
async def get_document(user: UserRead = Depends(get_current_user)):
    return {"url": await profile_service.get_document(user)}


@router.delete("/delete-document", summary="Удалить загруженный документ")
async def delete_document(user: UserRead = Depends(get_current_user)):
    await profile_service.delete_document(user)
    return {"message": "Document deleted"}
