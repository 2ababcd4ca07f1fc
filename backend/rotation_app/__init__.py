"""Sector rotation signal service: persistence, jobs, API and scheduling."""
