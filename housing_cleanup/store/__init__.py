"""Relational storage for the sales table."""

from .sales_table import SaleTable, TableTransaction, get_engine

__all__ = ["SaleTable", "TableTransaction", "get_engine"]
