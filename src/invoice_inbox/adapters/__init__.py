"""Mailbox source adapters."""
