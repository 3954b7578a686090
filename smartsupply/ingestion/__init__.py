"""
Data Ingestion Module
"""
from .readers import read_table, locate_columns, Table, TableFormat
from .transactions import TransactionParser, ParsedTransactions
from .rules import RuleLoader, ParsedRules

__all__ = [
    "read_table",
    "locate_columns",
    "Table",
    "TableFormat",
    "TransactionParser",
    "ParsedTransactions",
    "RuleLoader",
    "ParsedRules",
]
