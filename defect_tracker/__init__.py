"""User and defect tracking service with consistency-checked CRUD."""

__version__ = "0.1.0"
