from .reaper import ExpiryReaper, SweepResult

__all__ = ['ExpiryReaper', 'SweepResult']
