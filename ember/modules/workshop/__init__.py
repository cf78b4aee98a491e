from ember.modules.workshop.service import WorkshopService

__all__ = ["WorkshopService"]
