"""
External checks package for the KYB risk service.

This package contains the clients for third-party services consulted when
building a risk profile: sanctions screening, EU VAT validation and adverse
media analysis. Every check converts its own failures into conservative
default results instead of raising.
"""
