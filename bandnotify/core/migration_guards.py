"""Guarded Alembic operations with explicit table/index existence checks."""

from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from alembic import op


def table_exists(*, table_name: str) -> bool:
  """Return True when a table exists on the migration connection."""
  return sa.inspect(op.get_bind()).has_table(table_name)


def index_exists(*, table_name: str, index_name: str) -> bool:
  """Return True when the named index exists on the table."""
  if not table_exists(table_name=table_name):
    return False
  return any(index["name"] == index_name for index in sa.inspect(op.get_bind()).get_indexes(table_name))


def guarded_create_table(table_name: str, *columns: Any, **kwargs: Any) -> None:
  """Create a table only when it does not already exist."""
  if table_exists(table_name=table_name):
    return
  op.create_table(table_name, *columns, **kwargs)


def guarded_drop_table(table_name: str) -> None:
  if not table_exists(table_name=table_name):
    return
  op.drop_table(table_name)


def guarded_create_index(index_name: str, table_name: str, columns: list[str], **kwargs: Any) -> None:
  """Create an index only when it does not already exist."""
  if index_exists(table_name=table_name, index_name=index_name):
    return
  op.create_index(index_name, table_name, columns, **kwargs)


def guarded_drop_index(index_name: str, *, table_name: str) -> None:
  if not index_exists(table_name=table_name, index_name=index_name):
    return
  op.drop_index(index_name, table_name=table_name)
