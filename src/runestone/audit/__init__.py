"""
Audit logging for Runestone.

Provides JSONL logging of resolution results for review and debugging.
"""

from runestone.audit.logger import ResolutionAuditLogger

__all__ = ["ResolutionAuditLogger"]
