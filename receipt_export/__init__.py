"""Receipt export service: receipt records in, formatted Excel workbook out."""

__version__ = "1.0.0"
