"""
Endpoints de perfiles.

Este módulo maneja:
- GET /api/v1/profiles/me: Perfil propio (fila `users`)
- PUT /api/v1/profiles/me: Guardar ajustes (multipart, con fotos)
- GET /api/v1/profiles/{user_id}: Perfil público con sus recetas
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from supabase import Client

from gitgrub.domain_models import FIELD_IMAGE_TYPES, BaseUser
from gitgrub.notifications import get_notification_center
from gitgrub.profiles import get_own_profile, get_profile_view, update_settings
from gitgrub.social import FollowToggle
from gitgrub.storage import FileStaging

from ..dependencies import get_backend, get_current_user_id, get_optional_user_id, http_error
from ..models.requests import ProfilePageResponse, ProfileViewResponse, UserProfileResponse
from .recipes import card_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/me", response_model=UserProfileResponse)
def get_me(
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """Perfil del usuario autenticado."""
    try:
        profile = get_own_profile(client, user_id)
    except Exception as e:
        raise http_error(e) from e
    return UserProfileResponse(**asdict(profile))


@router.put("/me", response_model=UserProfileResponse)
async def update_me(
    email: str = Form(...),
    display_name: str = Form(...),
    username: str = Form(...),
    avatar_photo: Optional[str] = Form(None, description="URL actual del avatar"),
    cover_photo: Optional[str] = Form(None, description="URL actual de la portada"),
    remove_avatar_photo: bool = Form(False),
    remove_cover_photo: bool = Form(False),
    avatar_file: Optional[UploadFile] = File(None),
    cover_file: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
    client: Client = Depends(get_backend),
):
    """
    Guarda los ajustes del perfil.

    Las fotos se procesan en este orden: primero las bajas marcadas (solo
    para imágenes del propio storage), después las subidas nuevas. Una foto
    quitada queda en None aunque sea externa.

    Returns:
        Perfil actualizado
    """
    form = BaseUser(
        email=email,
        display_name=display_name,
        username=username,
        avatar_photo=avatar_photo or None,
        cover_photo=cover_photo or None,
    )

    staging = FileStaging(client, user_id)
    removals = {"avatar_photo": remove_avatar_photo, "cover_photo": remove_cover_photo}
    uploads = {"avatar_photo": avatar_file, "cover_photo": cover_file}

    for field, image_type in FIELD_IMAGE_TYPES.items():
        current_url = getattr(form, field)
        if removals[field] and current_url:
            staging.stage_delete(field, image_type, user_id, current_url)
            setattr(form, field, None)

        upload = uploads[field]
        if upload is not None and upload.filename:
            content = await upload.read()
            staging.stage_file(
                field,
                image_type,
                user_id,
                content,
                upload.filename,
                upload.content_type or "application/octet-stream",
            )

    try:
        profile = update_settings(client, user_id, form, staging)
    except Exception as e:
        raise http_error(e, user_id, notify="Error saving settings") from e

    get_notification_center(user_id).show("success", "Settings saved")
    return UserProfileResponse(**asdict(profile))


@router.get("/{user_id}", response_model=ProfilePageResponse)
def get_profile(
    user_id: str,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    client: Client = Depends(get_backend),
):
    """
    Perfil público con sus recetas.

    Raises:
        404: Si el usuario no existe
    """
    try:
        page = get_profile_view(client, user_id, viewer_id)
    except Exception as e:
        raise http_error(e) from e

    follow = FollowToggle(client, page.user.id, page.user.followed_by_me, page.user.follower_count)
    return ProfilePageResponse(
        user=ProfileViewResponse(**asdict(page.user)),
        recipes=[card_response(c) for c in page.recipes],
        is_me=page.is_me,
        follow_disabled_reason=follow.disabled_reason(viewer_id),
    )
