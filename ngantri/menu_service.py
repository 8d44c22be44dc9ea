"""
Menu service: categories and menu items of a merchant
"""

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import errors
from .models import Menu, MenuCategory, MenuCreate, MenuUpdate, utcnow
from .pagination import Page, paginate


class MenuService:
    """Handles business logic for menus and menu categories"""

    # Categories

    def create_category(self, db: Session, merchant_id: str, name: str) -> MenuCategory:
        name = name.strip()
        if self._category_name_taken(db, merchant_id, name):
            raise errors.conflict(f"Category {name} already exists")

        category = MenuCategory(merchant_id=merchant_id, name=name)
        try:
            db.add(category)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise errors.conflict(f"Category {name} already exists") from e
        return category

    def _category_name_taken(self, db: Session, merchant_id: str, name: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(MenuCategory.id).filter(
            MenuCategory.merchant_id == merchant_id,
            MenuCategory.name == name,
            MenuCategory.deleted_at.is_(None),
        )
        if exclude_id:
            query = query.filter(MenuCategory.id != exclude_id)
        return query.first() is not None

    def find_category(self, db: Session, category_id: str, merchant_id: Optional[str] = None) -> MenuCategory:
        query = db.query(MenuCategory).filter(
            MenuCategory.id == category_id, MenuCategory.deleted_at.is_(None)
        )
        if merchant_id:
            query = query.filter(MenuCategory.merchant_id == merchant_id)
        category = query.first()
        if not category:
            raise errors.not_found("Category", category_id)
        return category

    def list_categories(
        self,
        db: Session,
        merchant_id: Optional[str] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Page:
        query = db.query(MenuCategory).filter(MenuCategory.deleted_at.is_(None))
        if merchant_id:
            query = query.filter(MenuCategory.merchant_id == merchant_id)
        return paginate(query, MenuCategory.id, cursor, limit)

    def rename_category(self, db: Session, category_id: str, merchant_id: str, name: str) -> MenuCategory:
        category = self.find_category(db, category_id, merchant_id)
        name = name.strip()
        if self._category_name_taken(db, merchant_id, name, exclude_id=category_id):
            raise errors.conflict(f"Category {name} already exists")

        category.name = name
        category.updated_at = utcnow()
        db.commit()
        return category

    def delete_category(self, db: Session, category_id: str, merchant_id: Optional[str] = None):
        category = self.find_category(db, category_id, merchant_id)

        in_use = (
            db.query(Menu.id)
            .filter(Menu.category_id == category_id, Menu.deleted_at.is_(None))
            .first()
        )
        if in_use:
            raise errors.bad_request("Category still has menus")

        category.deleted_at = utcnow()
        db.commit()

    # Menus

    def create_menu(self, db: Session, merchant_id: str, data: MenuCreate) -> Menu:
        self.find_category(db, data.category_id, merchant_id)

        menu = Menu(
            merchant_id=merchant_id,
            category_id=data.category_id,
            name=data.name.strip(),
            description=data.description or None,
            image_url=data.image_url or None,
            price=data.price,
            is_available=data.is_available,
        )
        db.add(menu)
        db.commit()
        return menu

    def find_menu(self, db: Session, menu_id: str, merchant_id: Optional[str] = None) -> Menu:
        query = db.query(Menu).filter(Menu.id == menu_id, Menu.deleted_at.is_(None))
        if merchant_id:
            query = query.filter(Menu.merchant_id == merchant_id)
        menu = query.first()
        if not menu:
            raise errors.menu_not_found(menu_id)
        return menu

    def list_menus(
        self,
        db: Session,
        merchant_id: Optional[str] = None,
        category_id: Optional[str] = None,
        is_available: Optional[bool] = None,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Page:
        query = db.query(Menu).filter(Menu.deleted_at.is_(None))
        if merchant_id:
            query = query.filter(Menu.merchant_id == merchant_id)
        if category_id:
            query = query.filter(Menu.category_id == category_id)
        if is_available is not None:
            query = query.filter(Menu.is_available == is_available)
        return paginate(query, Menu.id, cursor, limit)

    def update_menu(self, db: Session, menu_id: str, merchant_id: str, data: MenuUpdate) -> Menu:
        menu = self.find_menu(db, menu_id, merchant_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id"):
            self.find_category(db, changes["category_id"], merchant_id)

        for key, value in changes.items():
            setattr(menu, key, value)
        menu.updated_at = utcnow()
        db.commit()
        return menu

    def set_availability(self, db: Session, menu_id: str, is_available: bool, merchant_id: Optional[str] = None) -> Menu:
        menu = self.find_menu(db, menu_id, merchant_id)
        menu.is_available = is_available
        menu.updated_at = utcnow()
        db.commit()
        return menu

    def delete_menu(self, db: Session, menu_id: str, merchant_id: Optional[str] = None):
        menu = self.find_menu(db, menu_id, merchant_id)
        menu.deleted_at = utcnow()
        db.commit()


# Global menu service instance
menu_service = MenuService()
