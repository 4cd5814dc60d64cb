"""Employees module — Employee and Manager models, directory and roster services."""

from vacation_portal.employees.models import Employee, Manager

__all__ = ["Employee", "Manager"]
