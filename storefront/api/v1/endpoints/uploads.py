import logging
import os
import time
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import ApiError, bad_request, not_found
from storefront.crud.product import get_product, update_product
from storefront.dependencies import AdminContext, get_current_admin, get_db
from storefront.schemas.common import DataResponse
from storefront.schemas.product import ProductImageOut
from storefront.schemas.uploads import DeletedFile, ItemFileList, RenameRequest, UploadResult
from storefront.services.images import (
    PRODUCT_IMAGE_TYPES,
    checked_item_name,
    infer_mime_type,
    items_dir,
    list_item_files,
    products_dir,
    public_file_url,
    sanitize_file_name,
    save_upload,
)
from storefront.services.products_import import is_uuid

router = APIRouter()
logger = logging.getLogger(__name__)


def _static_base_url() -> str:
    return settings.PUBLIC_BASE_URL.rstrip("/") + "/static"


@router.post("/products/{product_id}/image", response_model=DataResponse[ProductImageOut])
async def upload_product_image(
    product_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    admin: AdminContext = Depends(get_current_admin),
):
    """Загружает картинку товара и сразу прописывает её в image_url."""
    if not is_uuid(product_id):
        raise bad_request("Invalid id")

    mime_type = (file.content_type or "").strip().lower() or infer_mime_type(file.filename or "")
    if mime_type not in PRODUCT_IMAGE_TYPES:
        raise bad_request("Only jpeg/png/webp allowed")

    product = get_product(db, product_id)
    if product is None:
        raise not_found("Product not found")

    safe_name = sanitize_file_name(file.filename or "") or "image"
    file_name = f"{int(time.time() * 1000)}_{safe_name}"
    await save_upload(file, os.path.join(products_dir(), product_id, file_name), settings.UPLOAD_MAX_BYTES)

    image_url = public_file_url(f"{_static_base_url()}/products/{product_id}", file_name)
    update_product(db, product, image_url=image_url)
    logger.info(f"Картинка товара {product_id} обновлена: {file_name}")
    return DataResponse(data=ProductImageOut(image_url=image_url))


@router.post("/upload/items", response_model=DataResponse[UploadResult])
async def upload_item_images(
    files: List[UploadFile] = File(...),
    admin: AdminContext = Depends(get_current_admin),
):
    """
    Загрузка картинок в библиотеку static/items (для imageMode=filename).
    Ошибки по отдельным файлам собираются, остальные файлы сохраняются.
    """
    if not files:
        raise bad_request("file is required")

    saved = []
    errors = []
    for file in files:
        original_name = file.filename or f"file_{int(time.time() * 1000)}"
        safe_name = sanitize_file_name(original_name) or f"file_{int(time.time() * 1000)}"
        try:
            size = await save_upload(file, os.path.join(items_dir(), safe_name), settings.UPLOAD_MAX_BYTES)
        except ApiError as e:
            errors.append({"original_name": original_name, "message": e.message})
            continue
        except OSError as e:
            logger.error(f"Ошибка сохранения файла {original_name}: {e}")
            errors.append({"original_name": original_name, "message": "Failed to save file"})
            continue
        saved.append({"original_name": original_name, "file_name": safe_name, "size": size})

    return DataResponse(data=UploadResult(
        saved=saved,
        errors=errors,
        base_url=settings.PRODUCT_IMAGES_BASE_URL or None,
    ))


@router.get("/upload/items", response_model=DataResponse[ItemFileList])
def read_item_images(admin: AdminContext = Depends(get_current_admin)):
    return DataResponse(data=ItemFileList(
        files=list_item_files(),
        base_url=settings.PRODUCT_IMAGES_BASE_URL or None,
    ))


@router.delete("/upload/items/{name}", response_model=DataResponse[DeletedFile])
def delete_item_image(name: str, admin: AdminContext = Depends(get_current_admin)):
    safe_name = checked_item_name(name)
    try:
        os.remove(os.path.join(items_dir(), safe_name))
    except FileNotFoundError:
        raise not_found("File not found")
    return DataResponse(data=DeletedFile(deleted=safe_name))


@router.post("/upload/items/rename", response_model=DataResponse[RenameRequest])
def rename_item_image(payload: RenameRequest, admin: AdminContext = Depends(get_current_admin)):
    from_name = checked_item_name(payload.from_name)
    to_name = checked_item_name(payload.to_name)

    try:
        os.rename(os.path.join(items_dir(), from_name), os.path.join(items_dir(), to_name))
    except FileNotFoundError:
        raise not_found("File not found")
    return DataResponse(data=RenameRequest(from_name=from_name, to_name=to_name))
