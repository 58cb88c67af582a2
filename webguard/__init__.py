"""
Webguard - request hardening layer for the record-management web app
"""

__version__ = "0.1.0"
