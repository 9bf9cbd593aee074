"""Warden - a standalone watchdog for a long-running gateway process.

Probes the gateway on an interval, retries on a configured backoff schedule,
restarts it on sustained failure and notifies an operator channel. Keeps the
gateway's config file in sync between a git-tracked working copy and the
live location, validating it against a JSON Schema before activation.
"""

__version__ = "0.1.0"
