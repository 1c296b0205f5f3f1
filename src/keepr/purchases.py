"""
Purchase tracker: things bought for the home and when they are due
for replacement.
"""

from __future__ import annotations

from collections import Counter
from datetime import date
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta
from pydantic import ValidationInfo, field_validator

from .controller import RecordStore
from .keepr_env import KeeprConfig, KeeprEnvironment
from .model import Backend
from .record import Record, in_range, not_in_future, required_text


class PurchaseCategory(str, Enum):
    FURNITURE = "furniture"
    APPLIANCES = "appliances"
    ELECTRONICS = "electronics"
    OTHER = "other"


class PurchaseStatus(str, Enum):
    NORMAL = "normal"
    SOON = "soon"
    OVERDUE = "overdue"


class PurchaseSort(str, Enum):
    NAME = "name"
    DATE = "date"
    REPLACEMENT = "replacement"


SERVICE_LIFE_BUCKETS = ["1-3 years", "4-6 years", "7+ years"]


def service_life_bucket(years: int) -> str:
    if years <= 3:
        return SERVICE_LIFE_BUCKETS[0]
    if years <= 6:
        return SERVICE_LIFE_BUCKETS[1]
    return SERVICE_LIFE_BUCKETS[2]


class Purchase(Record):
    name: str
    category: PurchaseCategory = PurchaseCategory.OTHER
    purchase_date: date
    service_life_years: int = 1
    comment: str = ""
    is_favorite: bool = False

    @field_validator("name")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("comment")
    @classmethod
    def _comment(cls, v):
        return (v or "").strip()

    @field_validator("purchase_date")
    @classmethod
    def _bought_already(cls, v, info: ValidationInfo):
        return not_in_future(v, info)

    @field_validator("service_life_years")
    @classmethod
    def _service_life(cls, v, info: ValidationInfo):
        return in_range(v, info, 1, 100)

    @property
    def replacement_date(self) -> date:
        return self.purchase_date + relativedelta(years=self.service_life_years)


class PurchaseTracker:
    def __init__(self, env: Optional[KeeprEnvironment], backend: Backend):
        self.env = env
        config = env.config if env else KeeprConfig()
        self.soon_months = config.purchases.soon_months
        self.purchases: RecordStore[Purchase] = RecordStore(
            Purchase, backend, "purchases"
        )

    def status(self, purchase: Purchase, today: Optional[date] = None) -> PurchaseStatus:
        today = today or date.today()
        replacement = purchase.replacement_date
        if today >= replacement:
            return PurchaseStatus.OVERDUE
        if today >= replacement - relativedelta(months=self.soon_months):
            return PurchaseStatus.SOON
        return PurchaseStatus.NORMAL

    def add_purchase(
        self,
        name: str,
        purchase_date: date,
        category: PurchaseCategory | str = PurchaseCategory.OTHER,
        service_life_years: int = 1,
        comment: str = "",
        is_favorite: bool = False,
    ) -> Optional[Purchase]:
        return self.purchases.add(
            name=name,
            purchase_date=purchase_date,
            category=category,
            service_life_years=service_life_years,
            comment=comment,
            is_favorite=is_favorite,
        )

    def update_purchase(self, purchase_id: str, **changes) -> Optional[Purchase]:
        return self.purchases.update(purchase_id, **changes)

    def delete_purchase(self, purchase_id: str) -> bool:
        return self.purchases.delete(purchase_id)

    def toggle_favorite(self, purchase_id: str) -> Optional[Purchase]:
        return self.purchases.toggle(purchase_id, "is_favorite")

    def favorites(self) -> list[Purchase]:
        return self.purchases.sorted_by(
            "name", records=self.purchases.filtered(lambda p: p.is_favorite)
        )

    def listing(
        self,
        category: Optional[PurchaseCategory | str] = None,
        status: Optional[PurchaseStatus | str] = None,
        sort: PurchaseSort | str = PurchaseSort.DATE,
        today: Optional[date] = None,
    ) -> list[Purchase]:
        predicates = []
        if category:
            wanted_category = PurchaseCategory(category)
            predicates.append(lambda p: p.category is wanted_category)
        if status:
            wanted_status = PurchaseStatus(status)
            predicates.append(lambda p: self.status(p, today) is wanted_status)
        records = self.purchases.filtered(*predicates)
        sort = PurchaseSort(sort)
        if sort is PurchaseSort.NAME:
            return self.purchases.sorted_by("name", records=records)
        if sort is PurchaseSort.REPLACEMENT:
            return self.purchases.sorted_by(lambda p: p.replacement_date, records=records)
        return self.purchases.sorted_by("purchase_date", True, records=records)

    def by_category(self) -> dict[PurchaseCategory, int]:
        counts = self.purchases.count_by("category")
        return dict(sorted(counts.items(), key=lambda kv: kv[1], reverse=True))

    def by_status(self, today: Optional[date] = None) -> dict[PurchaseStatus, int]:
        counts = self.purchases.count_by(lambda p: self.status(p, today))
        return {s: counts.get(s, 0) for s in PurchaseStatus}

    def by_service_life(self) -> dict[str, int]:
        counts = Counter(service_life_bucket(p.service_life_years) for p in self.purchases)
        return {bucket: counts[bucket] for bucket in SERVICE_LIFE_BUCKETS if counts[bucket]}

    def stats(self, today: Optional[date] = None) -> dict:
        statuses = self.by_status(today)
        return {
            "purchases": len(self.purchases),
            "favorites": sum(1 for p in self.purchases if p.is_favorite),
            "soon": statuses[PurchaseStatus.SOON],
            "overdue": statuses[PurchaseStatus.OVERDUE],
            "categories": {c.value: n for c, n in self.by_category().items()},
        }
