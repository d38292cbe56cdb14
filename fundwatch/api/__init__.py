"""FundWatch HTTP API (FastAPI)."""
