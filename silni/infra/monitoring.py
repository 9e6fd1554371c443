# silni/infra/monitoring.py
import functools
from prometheus_client import Counter, Summary

# one increment per endpoint attempt
PUSH_SENDS = Counter('push_sends_total', 'Push send attempts per endpoint', ['notification_type', 'outcome'])

# one increment per delivery record
PUSH_RECIPIENTS = Counter('push_recipients_total', 'Recipients processed per dispatch', ['notification_type', 'status'])

# tokens disabled after the provider reported them unregistered
DEACTIVATED_TOKENS = Counter('deactivated_tokens_total', 'Device tokens deactivated after provider rejection')

# triggered jobs
JOB_RUNS = Counter('job_runs_total', 'Notification job invocations', ['job', 'status'])
JOB_DURATION = Summary('job_duration_seconds', 'Time spent running a notification job', ['job'])

def track_job(job):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with JOB_DURATION.labels(job=job).time():
                try:
                    result = func(*args, **kwargs)
                except Exception:
                    JOB_RUNS.labels(job=job, status="error").inc()
                    raise
            JOB_RUNS.labels(job=job, status="ok").inc()
            return result
        return wrapper
    return decorator
