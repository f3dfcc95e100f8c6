from __future__ import annotations

import logging

import pytest
from sqlalchemy import Column, Date, Integer, Numeric, String, Text

from activerow.migration import Migration
from activerow.schema.catalog import SchemaCatalog


class CreateMigUsers(Migration):
    def safe_up(self):
        self.create_table(
            "mig_users",
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("name", String(255), nullable=False, comment="user name"),
            Column("type", Integer, nullable=False, server_default="2"),
            Column("image", String(255)),
            Column("phone", String(11), nullable=False),
            Column("birthday", Date),
            Column("describe", Text),
            Column("cost", Numeric(19, 4)),
        )
        self.create_index("mig_users_name", "mig_users", "name")

    def safe_down(self):
        self.drop_table("mig_users")


@pytest.fixture
def migration(storage, catalog):
    migration = CreateMigUsers(storage, catalog)
    yield migration
    if catalog.has_table("mig_users"):
        migration.drop_table("mig_users")


def test_up_creates_table_and_down_drops_it(migration, catalog: SchemaCatalog, caplog) -> None:
    caplog.set_level(logging.INFO, logger="activerow.migration")

    assert migration.up() is True
    assert catalog.get_primary_key("mig_users") == ["id"]
    assert catalog.get_columns("mig_users")["type"].default == 2
    assert "> create table mig_users done (time:" in caplog.text
    assert "*** applied CreateMigUsers (up)" in caplog.text

    assert migration.down() is True
    assert catalog.has_table("mig_users") is False


def test_column_steps_refresh_catalog(migration, catalog: SchemaCatalog) -> None:
    migration.up()
    assert "nickname" not in catalog.get_columns("mig_users")

    migration.add_column("mig_users", Column("nickname", String(32)))
    assert "nickname" in catalog.get_columns("mig_users")

    migration.rename_column("mig_users", "nickname", "alias")
    assert "alias" in catalog.get_columns("mig_users")
    assert "nickname" not in catalog.get_columns("mig_users")

    migration.drop_column("mig_users", "alias")
    assert "alias" not in catalog.get_columns("mig_users")


def test_data_steps(migration, storage) -> None:
    migration.up()
    migration.insert("mig_users", {"name": "a", "phone": "1"})
    migration.insert("mig_users", {"name": "b", "phone": "2"})

    assert migration.update("mig_users", {"type": 4}, {"name": "a"}) == 1
    assert migration.delete("mig_users", {"name": "b"}) == 1
    assert storage.fetch_all("SELECT name, type FROM mig_users") == [{"name": "a", "type": 4}]

    migration.truncate_table("mig_users")
    assert storage.scalar("SELECT COUNT(*) FROM mig_users") == 0


def test_rename_table_and_drop_index(migration, catalog: SchemaCatalog) -> None:
    migration.up()
    migration.drop_index("mig_users_name", "mig_users")
    migration.rename_table("mig_users", "mig_people")
    try:
        assert catalog.has_table("mig_users") is False
        assert "phone" in catalog.get_columns("mig_people")
    finally:
        migration.drop_table("mig_people")


def test_false_result_rolls_back_data_steps(storage, catalog, versioned_table, caplog) -> None:
    class Declined(Migration):
        def safe_up(self):
            self.insert("versioned_item", {"title": "seed"})
            return False

    assert Declined(storage, catalog).up() is False
    assert storage.scalar("SELECT COUNT(*) FROM versioned_item") == 0
    assert "failed to apply Declined (up)" in caplog.text


def test_exception_rolls_back_and_is_reported(storage, catalog, versioned_table, caplog) -> None:
    class Broken(Migration):
        def safe_up(self):
            self.insert("versioned_item", {"title": "seed"})
            self.execute("INSERT INTO no_such_table (x) VALUES (1)")

    assert Broken(storage, catalog).up() is False
    assert storage.scalar("SELECT COUNT(*) FROM versioned_item") == 0
    assert "failed to apply Broken (up)" in caplog.text


def test_default_down_is_irreversible(storage, catalog) -> None:
    assert Migration(storage, catalog).down() is False
    assert Migration(storage, catalog).up() is True
