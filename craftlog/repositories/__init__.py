"""
Repositories Package

JobRepository is public. The WorkEntry/Expense repositories are raw
record access and must be imported explicitly from
``craftlog.repositories.raw``.
"""

from craftlog.repositories.jobs import JobRepository

__all__ = ["JobRepository"]
