"""payaudit - structured audit logging for payroll streaming automation."""

__version__ = "0.1.0"
