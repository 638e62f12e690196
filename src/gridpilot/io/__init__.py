"""Grid file operations and workbook import/export."""
