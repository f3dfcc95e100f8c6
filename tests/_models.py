from __future__ import annotations

from activerow.record import Op, Record
from activerow.validators import Integer, Number, Required, Rule, Safe, String


class UserInfo(Record):
    table_name = "user_info"
    attribute_labels = {
        "id": "ID",
        "name": "Name",
        "type": "Type",
        "image": "Image",
        "phone": "Phone",
        "birthday": "Birthday",
        "describe": "Describe",
        "cost": "Cost",
    }

    @classmethod
    def rules(cls):
        return [
            Rule(["name", "phone"], Required()),
            Rule("type", Integer()),
            Rule("birthday", Safe()),
            Rule("describe", String()),
            Rule("cost", Number()),
            Rule(["name", "image"], String(max=255)),
            Rule("phone", String(max=11)),
        ]


class VersionedItem(Record):
    table_name = "versioned_item"
    lock_column = "version"
    transactions = {"default": Op.ALL}

    @classmethod
    def rules(cls):
        return [
            Rule("title", Required()),
            Rule("qty", Integer(min=0)),
        ]


class OrderLine(Record):
    table_name = "order_line"

    @classmethod
    def rules(cls):
        return [Rule(["order_id", "line_no", "sku"], Required())]


class HookLog:
    """Collects hook invocations across record instances."""

    def __init__(self) -> None:
        self.events: list[tuple] = []


class TrackedItem(VersionedItem):
    """VersionedItem recording hook calls; hooks can be told to cancel or fail."""

    log = HookLog()
    cancel: set[str] = set()
    fail: set[str] = set()

    def _hook(self, name: str, *args) -> bool:
        self.log.events.append((name, *args))
        if name in self.fail:
            raise RuntimeError(f"{name} failed")
        return name not in self.cancel

    def before_save(self, insert: bool) -> bool:
        return self._hook("before_save", insert)

    def after_save(self, insert: bool, changed_attributes) -> None:
        self._hook("after_save", insert, dict(changed_attributes))

    def before_delete(self) -> bool:
        return self._hook("before_delete")

    def after_delete(self) -> None:
        self._hook("after_delete")

    def after_find(self) -> None:
        self._hook("after_find")

    def after_refresh(self) -> None:
        self._hook("after_refresh")


class DailyTotal(Record):
    table_name = "daily_total"
