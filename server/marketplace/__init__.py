"""Equipment rental and brokerage marketplace API."""
