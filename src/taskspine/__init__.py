"""
taskspine - cron task scheduler.

- taskspine.core: errors, logging, settings, storage primitives
- taskspine.scheduling: cron evaluation, task registry, run coordinator
- taskspine.cli: ``taskspine`` command line
"""

__version__ = "0.1.0"
