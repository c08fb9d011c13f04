"""
Reference data package for the KYB risk service.

This package loads the company registry, taxpayer rating and insolvency
datasets into in-memory indexes and answers aggregate lookups over them.
"""
