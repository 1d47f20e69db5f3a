"""Report output: Excel workbook and Graph mail."""
