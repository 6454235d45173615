from .service import AccountService, MetricsRequest

__all__ = ['AccountService', 'MetricsRequest']
