"""
Grocery list: products to buy, optionally grouped under user-defined
categories.
"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationInfo, field_validator

from .controller import RecordStore
from .keepr_env import KeeprEnvironment
from .model import Backend
from .record import Record, RecordValidationError, in_range, optional_text, required_text
from .shared import log_msg


class Product(Record):
    name: str
    category: Optional[str] = None
    quantity: int = 1
    is_completed: bool = False

    @field_validator("name")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("category")
    @classmethod
    def _category(cls, v, info: ValidationInfo):
        return optional_text(v, info)

    @field_validator("quantity")
    @classmethod
    def _quantity(cls, v, info: ValidationInfo):
        return in_range(v, info, 1, 9999)


class GroceryCategory(Record):
    name: str

    @field_validator("name")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)


class GroceryList:
    def __init__(self, env: Optional[KeeprEnvironment], backend: Backend):
        self.env = env
        self.products: RecordStore[Product] = RecordStore(Product, backend, "products")
        self.categories: RecordStore[GroceryCategory] = RecordStore(
            GroceryCategory, backend, "grocery_categories"
        )
        self.search_text = ""
        self.category: Optional[str] = None

    # ---------------- products ----------------

    def add_product(
        self, name: str, quantity: int = 1, category: Optional[str] = None
    ) -> Optional[Product]:
        return self.products.add(
            name=name, quantity=quantity, category=self._known_category(category)
        )

    def update_product(self, product_id: str, **changes) -> Optional[Product]:
        if "category" in changes:
            changes["category"] = self._known_category(changes["category"])
        return self.products.update(product_id, **changes)

    def delete_product(self, product_id: str) -> bool:
        return self.products.delete(product_id)

    def toggle_completed(self, product_id: str) -> Optional[Product]:
        return self.products.toggle(product_id, "is_completed")

    def delete_completed(self) -> int:
        return self.products.delete_where(lambda p: p.is_completed)

    def clear_all(self) -> bool:
        return self.products.clear()

    def filtered_products(self) -> list[Product]:
        records = self.products.search(self.search_text, "name")
        if self.category:
            wanted = self.category.casefold()
            records = self.products.filtered(
                lambda p: (p.category or "").casefold() == wanted, records=records
            )
        # open items first, each group by name
        records = self.products.sorted_by("name", records=records)
        return self.products.sorted_by(lambda p: p.is_completed, records=records)

    def progress(self) -> tuple[int, int]:
        done = sum(1 for p in self.products if p.is_completed)
        return done, len(self.products)

    # ---------------- categories ----------------

    def category_named(self, name: Optional[str]) -> Optional[GroceryCategory]:
        wanted = (name or "").strip().casefold()
        for category in self.categories:
            if category.name.casefold() == wanted:
                return category
        return None

    def _known_category(self, name: Optional[str]) -> Optional[str]:
        """Canonical spelling of an existing category; unknown names are kept as typed."""
        if name is None or not name.strip():
            return None
        category = self.category_named(name)
        return category.name if category else name.strip()

    def _check_unique(self, name: str, exclude_id: Optional[str] = None):
        existing = self.category_named(name)
        if existing is not None and existing.id != exclude_id:
            raise RecordValidationError([f"name: category {name.strip()!r} already exists"])

    def sorted_categories(self) -> list[GroceryCategory]:
        return self.categories.sorted_by("name")

    def add_category(self, name: str) -> Optional[GroceryCategory]:
        self._check_unique(name)
        return self.categories.add(name=name)

    def rename_category(self, category_id: str, name: str) -> Optional[GroceryCategory]:
        category = self.categories.get(category_id)
        if category is None:
            raise KeyError(category_id)
        self._check_unique(name, exclude_id=category_id)
        renamed = self.categories.revised(category_id, name=name)
        records = [renamed if r.id == category_id else r for r in self.categories]
        saved = self._save_categories(records, category.name, renamed.name)
        return renamed if saved else None

    def delete_category(
        self, category_id: str, move_to: Optional[str] = None
    ) -> bool:
        category = self.categories.get(category_id)
        if category is None:
            return False
        target = self._known_category(move_to)
        if target is not None and target.casefold() == category.name.casefold():
            target = None
        records = [r for r in self.categories if r.id != category_id]
        return self._save_categories(records, category.name, target)

    def _save_categories(
        self, categories: list[GroceryCategory], old_name: str, new_name: Optional[str]
    ) -> bool:
        """
        Refile the products of `old_name` (matched in any case) under
        `new_name`, then store `categories`. Products are saved first; when
        the category save fails they are restored, so either both
        collections change or neither does.
        """
        before = self.products.all()
        wanted = old_name.casefold()
        moved = [
            p.touched(category=new_name) if (p.category or "").casefold() == wanted else p
            for p in before
        ]
        refiled = any((p.category or "").casefold() == wanted for p in before)
        if refiled and not self.products.replace_all(moved):
            return False
        if self.categories.replace_all(categories):
            return True
        if refiled and not self.products.replace_all(before):
            log_msg(f"products left under {new_name!r} although {old_name!r} was kept")
        return False

    def category_counts(self) -> dict[str, int]:
        counts = self.products.count_by(lambda p: p.category or "Uncategorized")
        return dict(counts.most_common())
