"""PDF writing and reading built on PyMuPDF."""
