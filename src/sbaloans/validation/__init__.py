"""Output validation and console reporting."""

from sbaloans.validation.core import ValidationResult, ValidationRunner
from sbaloans.validation.reporter import ConsoleReporter

__all__ = ["ConsoleReporter", "ValidationResult", "ValidationRunner"]
