# catalog/routers/products.py
from fastapi import APIRouter, Depends, Response, status
from sqlmodel import Session

from catalog.core.auth import AuthorizationGuard, Principal, get_guard, require_operator
from catalog.core.storage_utils import AssetStore, product_assets
from catalog.database import get_session
from catalog.repositories.product_repo import ProductRepository
from catalog.routers.forms import ProductForm, product_form
from catalog.schemas.product import (
    ProductFullRead,
    ProductMutationResult,
    ProductSummaryRead,
    ProductWithImagesRead,
    SoldOutResult,
)
from catalog.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()


def get_product_service(
    assets: AssetStore = Depends(product_assets),
    guard: AuthorizationGuard = Depends(get_guard),
) -> ProductService:
    return ProductService(repo, assets, guard)


# -------- Public endpoints --------


@router.get("", response_model=list[ProductWithImagesRead])
def list_products(
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    List all products, newest first, each with its ordered gallery.

    - Public endpoint.
    """
    return service.list_public_products(session)


@router.get("/slug/{slug}", response_model=ProductFullRead)
def get_product_by_slug(
    slug: str,
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Product detail page data: product, gallery and detail sections.

    - Public endpoint.
    """
    return service.get_public_product(session, slug)


# -------- Operator endpoints --------


@router.get("/manage", response_model=list[ProductSummaryRead])
def list_my_products(
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: ProductService = Depends(get_product_service),
):
    """
    Products owned by the current operator (admin list).
    """
    return service.list_owner_products(session, principal)


@router.get("/{item_id}/edit", response_model=ProductFullRead)
def get_product_for_edit(
    item_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: ProductService = Depends(get_product_service),
):
    """
    Everything the edit form needs, including image/detail ids.
    """
    return service.get_product_for_edit(session, principal, item_id)


@router.post(
    "",
    response_model=ProductMutationResult,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    principal: Principal = Depends(require_operator),
    form: ProductForm = Depends(product_form),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Create a product from the admin form (multipart).

    - `images`: one or more gallery files (required)
    - `details[i].title|description|image`: optional detail sections
    """
    return service.create_product(
        session,
        principal,
        form.fields,
        form.images,
        form.details,
    )


@router.post("/{item_id}", response_model=ProductMutationResult)
def update_product(
    item_id: int,
    principal: Principal = Depends(require_operator),
    form: ProductForm = Depends(product_form),
    session: Session = Depends(get_session),
    service: ProductService = Depends(get_product_service),
):
    """
    Update a product from the admin form (multipart).

    - `existing_image_ids` / `existing_detail_ids`: rows to keep, in order
    - `images`, `details[i].*`: appended after the kept rows
    - `details[i].detail_id`: existing detail whose image this section takes over
    """
    return service.update_product(
        session,
        principal,
        item_id,
        form.fields,
        images=form.images,
        existing_image_ids=form.existing_image_ids,
        details=form.details,
        existing_detail_ids=form.existing_detail_ids,
    )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    item_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: ProductService = Depends(get_product_service),
):
    """
    Delete a product, its rows and its Storage objects.
    """
    service.delete_product(session, principal, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{item_id}/sold-out", response_model=SoldOutResult)
def toggle_sold_out(
    item_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(require_operator),
    service: ProductService = Depends(get_product_service),
):
    """
    Flip the sold-out flag and return its new value.
    """
    return service.toggle_sold_out(session, principal, item_id)
