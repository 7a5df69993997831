# catalog/repositories/product_repo.py
import uuid
from typing import Iterable

from sqlalchemy import delete, not_, update
from sqlmodel import Session, select

from catalog.models.product import (
    CatalogItem,
    CatalogItemDetail,
    CatalogItemImage,
    utcnow,
)


class ProductRepository:
    """
    Data access layer for CatalogItem, CatalogItemImage & CatalogItemDetail.

    - Pure DB operations (CRUD + queries).
    - Every write commits on its own; there is no surrounding transaction.
    - No FastAPI, no business logic.
    """

    # ----- Items -----

    def get_by_id(self, session: Session, item_id: int) -> CatalogItem | None:
        return session.get(CatalogItem, item_id)

    def get_by_slug(self, session: Session, slug: str) -> CatalogItem | None:
        stmt = select(CatalogItem).where(CatalogItem.slug == slug)
        return session.exec(stmt).first()

    def list_for_owner(
        self,
        session: Session,
        owner_id: uuid.UUID,
    ) -> list[CatalogItem]:
        stmt = (
            select(CatalogItem)
            .where(CatalogItem.owner_id == owner_id)
            .order_by(CatalogItem.created_at.desc(), CatalogItem.id.desc())
        )
        return list(session.exec(stmt).all())

    def list_public(self, session: Session) -> list[CatalogItem]:
        stmt = select(CatalogItem).order_by(
            CatalogItem.created_at.desc(), CatalogItem.id.desc()
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, item: CatalogItem) -> CatalogItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def update(self, session: Session, item: CatalogItem) -> CatalogItem:
        item.updated_at = utcnow()
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: CatalogItem) -> None:
        # Image/detail rows go with it (ON DELETE CASCADE).
        session.delete(item)
        session.commit()

    def delete_by_id(self, session: Session, item_id: int) -> None:
        session.execute(delete(CatalogItem).where(CatalogItem.id == item_id))
        session.commit()

    def toggle_sold_out(self, session: Session, item_id: int) -> bool:
        """
        Flip sold_out in a single UPDATE and return the new value.
        """
        session.execute(
            update(CatalogItem)
            .where(CatalogItem.id == item_id)
            .values(sold_out=not_(CatalogItem.sold_out), updated_at=utcnow())
        )
        session.commit()
        stmt = select(CatalogItem.sold_out).where(CatalogItem.id == item_id)
        return bool(session.exec(stmt).one())

    # ----- Images -----

    def list_images(
        self,
        session: Session,
        item_id: int,
    ) -> list[CatalogItemImage]:
        stmt = (
            select(CatalogItemImage)
            .where(CatalogItemImage.item_id == item_id)
            .order_by(CatalogItemImage.order, CatalogItemImage.id)
        )
        return list(session.exec(stmt).all())

    def list_images_for_items(
        self,
        session: Session,
        item_ids: Iterable[int],
    ) -> dict[int, list[CatalogItemImage]]:
        ids = list(item_ids)
        grouped: dict[int, list[CatalogItemImage]] = {item_id: [] for item_id in ids}
        if not ids:
            return grouped
        stmt = (
            select(CatalogItemImage)
            .where(CatalogItemImage.item_id.in_(ids))
            .order_by(CatalogItemImage.item_id, CatalogItemImage.order)
        )
        for image in session.exec(stmt).all():
            grouped[image.item_id].append(image)
        return grouped

    def create_image(
        self,
        session: Session,
        image: CatalogItemImage,
    ) -> CatalogItemImage:
        session.add(image)
        session.commit()
        session.refresh(image)
        return image

    def delete_images(self, session: Session, image_ids: list[int]) -> None:
        if not image_ids:
            return
        session.execute(
            delete(CatalogItemImage).where(CatalogItemImage.id.in_(image_ids))
        )
        session.commit()

    def delete_all_images(self, session: Session, item_id: int) -> None:
        session.execute(
            delete(CatalogItemImage).where(CatalogItemImage.item_id == item_id)
        )
        session.commit()

    def set_image_order(self, session: Session, image_id: int, order: int) -> None:
        session.execute(
            update(CatalogItemImage)
            .where(CatalogItemImage.id == image_id)
            .values(order=order, updated_at=utcnow())
        )
        session.commit()

    # ----- Details -----

    def list_details(
        self,
        session: Session,
        item_id: int,
    ) -> list[CatalogItemDetail]:
        stmt = (
            select(CatalogItemDetail)
            .where(CatalogItemDetail.item_id == item_id)
            .order_by(CatalogItemDetail.order, CatalogItemDetail.id)
        )
        return list(session.exec(stmt).all())

    def create_detail(
        self,
        session: Session,
        detail: CatalogItemDetail,
    ) -> CatalogItemDetail:
        session.add(detail)
        session.commit()
        session.refresh(detail)
        return detail

    def delete_details(self, session: Session, detail_ids: list[int]) -> None:
        if not detail_ids:
            return
        session.execute(
            delete(CatalogItemDetail).where(CatalogItemDetail.id.in_(detail_ids))
        )
        session.commit()

    def delete_all_details(self, session: Session, item_id: int) -> None:
        session.execute(
            delete(CatalogItemDetail).where(CatalogItemDetail.item_id == item_id)
        )
        session.commit()

    def set_detail_order(self, session: Session, detail_id: int, order: int) -> None:
        session.execute(
            update(CatalogItemDetail)
            .where(CatalogItemDetail.id == detail_id)
            .values(order=order, updated_at=utcnow())
        )
        session.commit()
