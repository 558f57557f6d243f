"""Background job modules for periodic ledger maintenance."""

from survey_ledger.jobs.ttl_renewal import ttl_renewal

__all__ = ["ttl_renewal"]
