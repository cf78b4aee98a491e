from ember.modules.jobs.service import JobService

__all__ = ["JobService"]
