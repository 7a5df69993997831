# catalog/routers/banners.py
from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from catalog.core.auth import AuthorizationGuard, Principal, get_guard, require_operator
from catalog.core.storage_utils import AssetStore, banner_assets
from catalog.database import get_session
from catalog.repositories.banner_repo import BannerRepository
from catalog.routers.forms import BannerForm, banner_form
from catalog.schemas.banner import BannerMutationResult, BannerRead
from catalog.services.banner_service import BannerService

router = APIRouter(prefix="/banners", tags=["Banners"])

repo = BannerRepository()


def get_banner_service(
    assets: AssetStore = Depends(banner_assets),
    guard: AuthorizationGuard = Depends(get_guard),
) -> BannerService:
    return BannerService(repo, assets, guard)


# -------- Public endpoints --------


@router.get("", response_model=list[BannerRead])
def list_active_banners(
    session: Session = Depends(get_session),
    service: BannerService = Depends(get_banner_service),
):
    """
    Active banners for the home page, by display order.
    """
    return service.list_active_banners(session)


# -------- Operator endpoints --------


@router.get("/manage", response_model=list[BannerRead])
def list_banners(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: BannerService = Depends(get_banner_service),
):
    """
    All banners, including inactive ones.
    """
    return service.list_banners(session, principal)


@router.get("/{banner_id}", response_model=BannerRead)
def get_banner(
    banner_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: BannerService = Depends(get_banner_service),
):
    return service.get_banner(session, principal, banner_id)


@router.post(
    "",
    response_model=BannerMutationResult,
    status_code=status.HTTP_201_CREATED,
)
def create_banner(
    principal: Principal = Depends(require_operator),
    form: BannerForm = Depends(banner_form),
    session: Session = Depends(get_session),
    service: BannerService = Depends(get_banner_service),
):
    """
    Create a banner (multipart).

    - `image_mobile`, `image_desktop`: both required
    - `display_order`: defaults to the end of the list
    """
    return service.create_banner(
        session,
        principal,
        form.fields,
        form.image_mobile,
        form.image_desktop,
    )


@router.post("/{banner_id}", response_model=BannerMutationResult)
def update_banner(
    banner_id: int,
    principal: Principal = Depends(require_operator),
    form: BannerForm = Depends(banner_form),
    session: Session = Depends(get_session),
    service: BannerService = Depends(get_banner_service),
):
    """
    Update a banner; a slot without a new file keeps its image.
    """
    return service.update_banner(
        session,
        principal,
        banner_id,
        form.fields,
        image_mobile=form.image_mobile,
        image_desktop=form.image_desktop,
    )


@router.delete("/{banner_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_banner(
    banner_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: BannerService = Depends(get_banner_service),
):
    service.delete_banner(session, principal, banner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
