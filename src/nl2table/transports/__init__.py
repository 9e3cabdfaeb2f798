"""Transports for the nl2table service."""
