from .retry import compute_backoff, retry_call, schedule_retry

__all__ = ["compute_backoff", "retry_call", "schedule_retry"]
