"""GigRadar: scrape freelance job postings and score them against a skills profile."""

__version__ = "0.1.0"
