# catalog/repositories/banner_repo.py
from sqlalchemy import func
from sqlmodel import Session, select

from catalog.models.banner import Banner
from catalog.models.product import utcnow


class BannerRepository:
    """
    Data access layer for Banner.
    """

    def get_by_id(self, session: Session, banner_id: int) -> Banner | None:
        return session.get(Banner, banner_id)

    def list_all(self, session: Session) -> list[Banner]:
        stmt = select(Banner).order_by(Banner.display_order, Banner.id)
        return list(session.exec(stmt).all())

    def list_active(self, session: Session) -> list[Banner]:
        stmt = (
            select(Banner)
            .where(Banner.is_active == True)  # noqa: E712
            .order_by(Banner.display_order, Banner.id)
        )
        return list(session.exec(stmt).all())

    def max_display_order(self, session: Session) -> int:
        """Highest display_order across all banners, 0 when there are none."""
        stmt = select(func.max(Banner.display_order))
        value = session.exec(stmt).one()
        return int(value or 0)

    def create(self, session: Session, banner: Banner) -> Banner:
        session.add(banner)
        session.commit()
        session.refresh(banner)
        return banner

    def update(self, session: Session, banner: Banner) -> Banner:
        banner.updated_at = utcnow()
        session.add(banner)
        session.commit()
        session.refresh(banner)
        return banner

    def delete(self, session: Session, banner: Banner) -> None:
        session.delete(banner)
        session.commit()
