"""
Mail Bridge Backend

A FastAPI service that lets tool-calling clients read and search an
Outlook mailbox through Microsoft Graph using delegated OAuth.
"""

__version__ = "1.0.0"
