"""
Service functions used by the digest job.

This package contains digest email rendering and the Amazon SES sender.
"""

__all__ = ['email', 'ses']
