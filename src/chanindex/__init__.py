"""chanindex — incremental channel backup indexer with OCR and search."""
