import sqlite3

import pytest

from gymdesk.models.database import (current_db_path, execute_query, execute_update, init_db,
                                     map_fields, run_in_transaction, transaction)


def test_current_db_path_follows_app_config(app_ctx):
    assert current_db_path() == app_ctx.config["DATABASE_PATH"]


def test_default_data_is_seeded_once(app_ctx, count):
    init_db(current_db_path())
    assert count("users", "role = 'admin'") == 1
    names = [r["name"] for r in execute_query("SELECT name FROM membership_plans ORDER BY price",
                                              db_path=current_db_path(), fetch=True)]
    assert names == ["Monthly Basic", "Quarterly Premium", "Yearly VIP"]


def test_run_in_transaction_commits(app_ctx, count):
    def add_supplement(conn):
        return execute_query("INSERT INTO supplements (name, price, stock_quantity) VALUES (?, ?, ?)",
                             ("Creatine", 20, 5), conn=conn)

    new_id = run_in_transaction(add_supplement)
    assert new_id
    assert count("supplements", "id = ?", (new_id,)) == 1


def test_transaction_rolls_back_on_error(app_ctx, count):
    with pytest.raises(RuntimeError):
        with transaction() as conn:
            execute_query("INSERT INTO supplements (name, price, stock_quantity) VALUES ('X', 1, 1)",
                          conn=conn)
            raise RuntimeError("abort")
    assert count("supplements") == 0


def test_stock_never_negative(app_ctx):
    new_id = execute_query("INSERT INTO supplements (name, price, stock_quantity) VALUES ('Y', 1, 1)",
                           db_path=current_db_path())
    with pytest.raises(sqlite3.IntegrityError):
        execute_update("UPDATE supplements SET stock_quantity = -1 WHERE id = ?", (new_id,),
                       current_db_path())


def test_one_active_membership_per_member_in_schema(seed):
    member = seed.member()
    seed.active_membership(member.id)
    with pytest.raises(sqlite3.IntegrityError):
        seed.active_membership(member.id)


def test_map_fields():
    field_map = {"firstName": "first_name", "isActive": "is_active"}
    assert map_fields({"firstName": "A", "is_active": 1, "bogus": 2, "isActive": None},
                      field_map) == {"first_name": "A", "is_active": 1}
    assert map_fields(None, field_map) == {}
