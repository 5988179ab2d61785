"""FastAPI service exposing the sales order query engine and sync status."""
