"""
Export Module
"""
from .excel import export_results_to_excel, export_filename, build_results_frame

__all__ = [
    "export_results_to_excel",
    "export_filename",
    "build_results_frame",
]
