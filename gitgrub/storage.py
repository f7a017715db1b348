"""
gitgrub.storage
===============

Subida y borrado de imágenes de perfil en el storage de Supabase, y el
"staging" de archivos del formulario de ajustes.

Flujo típico (pantalla de ajustes)
----------------------------------
1) El usuario elige un avatar/cover -> `FileStaging.stage_file`
2) El usuario quita una imagen existente -> `FileStaging.stage_delete`
3) Al guardar -> `FileStaging.process` borra lo marcado, sube lo nuevo y
   devuelve los campos de foto actualizados.

Cada subida/borrado mantiene sincronizado el cache local de imágenes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

from supabase import Client

from .backend import BackendError
from .config import get_settings
from .db.image_cache import cache_image, delete_cached_image
from .domain_models import IMAGE_FIELDS, get_image_type

logger = logging.getLogger(__name__)


def generate_storage_path(image_type: str, image_source_id: str, user_id: str, file_name: str) -> str:
    """
    Path del objeto en el bucket.

    - Imagen propia del usuario: `{folder}/{user_id}.{ext}`
    - Imagen de otra entidad:   `{folder}/{source_id}_{user_id}.{ext}`
    """
    folder = get_image_type(image_type).storage_folder
    extension = file_name.rsplit(".", 1)[-1]
    if image_source_id == user_id:
        file_ref = f"{user_id}.{extension}"
    else:
        file_ref = f"{image_source_id}_{user_id}.{extension}"
    return f"{folder}/{file_ref}"


def is_supabase_url(url: Optional[str]) -> bool:
    """True si la URL apunta al proyecto Supabase configurado."""
    if not url:
        return False
    base = get_settings().supabase_url
    if not base:
        return False
    return urlparse(url).netloc == urlparse(base).netloc


def storage_path_from_public_url(image_type: str, public_url: str) -> str:
    """
    Reconstruye el path del objeto a partir de su URL pública.

    Se toma solo el nombre de archivo (sin query `?v...`) y se le antepone la
    carpeta del tipo de imagen.
    """
    folder = get_image_type(image_type).storage_folder
    file_name = public_url.split("/")[-1].split("?")[0]
    return f"{folder}/{file_name}"


def upload_file(
    client: Client,
    user_id: str,
    content: bytes,
    file_name: str,
    content_type: str,
    image_type: str,
    image_source_id: str,
    bucket_name: Optional[str] = None,
) -> str:
    """
    Sube (upsert) una imagen y devuelve su URL pública versionada.

    La URL lleva el sufijo `?v{millis}` para invalidar caches del navegador y
    del cache local. La imagen subida queda cacheada bajo su clave.

    Raises:
        PermissionError: Si no hay usuario autenticado.
        BackendError: Si el storage rechaza la subida.
    """
    if not user_id:
        raise PermissionError("User not authenticated")

    bucket = bucket_name or get_image_type(image_type).bucket_name
    path = generate_storage_path(image_type, image_source_id, user_id, file_name)
    logger.info(f"Subiendo imagen a {bucket}/{path}")

    try:
        bucket_api = client.storage.from_(bucket)
        bucket_api.upload(
            path=path,
            file=content,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        base_url = bucket_api.get_public_url(path)
    except Exception as e:
        logger.error(f"Error subiendo imagen {path}: {e}")
        raise BackendError(str(e)) from e

    versioned_url = f"{base_url.rstrip('?')}?v{int(time.time() * 1000)}"

    delete_cached_image(image_type, image_source_id)
    cache_image(image_type, image_source_id, content, versioned_url, content_type)

    return versioned_url


def delete_file(
    client: Client,
    user_id: str,
    image_type: str,
    image_source_id: str,
    public_url: Optional[str],
    bucket_name: Optional[str] = None,
) -> None:
    """
    Borra una imagen del storage y del cache local.

    Raises:
        PermissionError: Si no hay usuario autenticado.
        ValueError: Si no se pasa la URL pública (no se puede inferir el path).
        BackendError: Si el storage rechaza el borrado.
    """
    if not user_id:
        raise PermissionError("User not authenticated")
    if not public_url:
        raise ValueError("Public URL is required for accurate file deletion.")

    bucket = bucket_name or get_image_type(image_type).bucket_name
    full_path = storage_path_from_public_url(image_type, public_url)

    try:
        client.storage.from_(bucket).remove([full_path])
    except Exception as e:
        logger.error(f"Error borrando imagen {full_path}: {e}")
        raise BackendError(str(e)) from e

    delete_cached_image(image_type, image_source_id)


@dataclass
class StagedFile:
    content: bytes
    file_name: str
    content_type: str
    image_type: str
    image_source_id: str
    bucket_name: str


@dataclass
class StagedDeletion:
    field: str
    image_type: str
    image_source_id: str
    preview_url: str
    bucket_name: str


class FileStaging:
    """
    Archivos elegidos (o quitados) en el formulario, pendientes de guardar.

    Hay como máximo un archivo y una baja por campo (`avatar_photo`,
    `cover_photo`). Marcar una baja descarta el archivo elegido para ese campo.
    """

    def __init__(self, client: Client, user_id: Optional[str]):
        self.client = client
        self.user_id = user_id
        self.staged_files: Dict[str, StagedFile] = {}
        self.staged_for_deletion: Dict[str, StagedDeletion] = {}

    @staticmethod
    def _check_field(field: str) -> None:
        if field not in IMAGE_FIELDS:
            raise ValueError(f"Campo de imagen inválido: {field}")

    def stage_file(
        self,
        field: str,
        image_type: str,
        image_source_id: str,
        content: bytes,
        file_name: str,
        content_type: str,
        bucket_name: Optional[str] = None,
    ) -> None:
        self._check_field(field)
        self.staged_files[field] = StagedFile(
            content=content,
            file_name=file_name,
            content_type=content_type,
            image_type=image_type,
            image_source_id=image_source_id,
            bucket_name=bucket_name or get_image_type(image_type).bucket_name,
        )

    def clear_staged_file(self, field: str) -> None:
        self.staged_files.pop(field, None)

    def stage_delete(
        self,
        field: str,
        image_type: str,
        image_source_id: str,
        preview_url: str,
        bucket_name: Optional[str] = None,
    ) -> None:
        self._check_field(field)
        self.staged_for_deletion[field] = StagedDeletion(
            field=field,
            image_type=image_type,
            image_source_id=image_source_id,
            preview_url=preview_url,
            bucket_name=bucket_name or get_image_type(image_type).bucket_name,
        )
        self.clear_staged_file(field)

    def clear_all(self) -> None:
        self.staged_files.clear()
        self.staged_for_deletion.clear()

    def process(self) -> Dict[str, Optional[str]]:
        """
        Aplica bajas y subidas pendientes.

        - Las bajas solo se ejecutan para URLs del propio Supabase (una foto de
          Google no se borra de ningún bucket). Un error en una baja se loguea
          y no corta el guardado.
        - Las subidas sí propagan errores.

        Returns:
            Campos de foto actualizados, ej: {"avatar_photo": None,
            "cover_photo": "https://.../users/u1.png?v1712..."}
        """
        if not self.user_id:
            raise PermissionError("User not authenticated")

        updated: Dict[str, Optional[str]] = {}

        for field in IMAGE_FIELDS:
            deletion = self.staged_for_deletion.get(field)
            if deletion is None or not is_supabase_url(deletion.preview_url):
                continue
            try:
                delete_file(
                    self.client,
                    self.user_id,
                    deletion.image_type,
                    deletion.image_source_id,
                    deletion.preview_url,
                    deletion.bucket_name,
                )
                updated[field] = None
            except (BackendError, ValueError) as e:
                logger.error(f"Error borrando archivo de {field}: {e}")

        for field in IMAGE_FIELDS:
            staged = self.staged_files.get(field)
            if staged is None or not staged.content:
                continue
            public_url = upload_file(
                self.client,
                self.user_id,
                staged.content,
                staged.file_name,
                staged.content_type,
                staged.image_type,
                staged.image_source_id,
                staged.bucket_name,
            )
            if public_url:
                updated[field] = public_url

        logger.info(f"Staging procesado, campos actualizados: {list(updated)}")
        return updated
