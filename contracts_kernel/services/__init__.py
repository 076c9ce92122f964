"""Kernel services: storage, validation, locking, documents, notifications and workflows."""
