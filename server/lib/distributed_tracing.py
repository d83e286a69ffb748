"""Correlation IDs for sandbox requests.

Every HTTP request and every background monitoring tick runs under a
correlation ID held in a context variable, so structured log lines and
monitoring entries emitted deep inside the simulators can be tied back to
the request that triggered them.
"""

import contextvars
from uuid import uuid4

DEFAULT_CORRELATION_ID = 'no-request-id'

correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
  'correlation_id', default=DEFAULT_CORRELATION_ID
)


def get_correlation_id() -> str:
  """Return the correlation ID of the current context."""
  return correlation_id.get()


def set_correlation_id(request_id: str) -> contextvars.Token:
  """Bind a correlation ID to the current context.

  Args:
      request_id: Value of the X-Correlation-ID header or a generated UUID

  Returns:
      Context token that can be passed to reset_correlation_id
  """
  return correlation_id.set(request_id)


def generate_correlation_id() -> str:
  """Generate a fresh correlation ID and bind it to the current context."""
  request_id = str(uuid4())
  set_correlation_id(request_id)
  return request_id


def reset_correlation_id(token: contextvars.Token | None = None) -> None:
  """Restore the previous correlation ID.

  Without a token the context falls back to the default placeholder, which is
  what the periodic monitoring task uses between ticks.
  """
  if token is not None:
    correlation_id.reset(token)
  else:
    correlation_id.set(DEFAULT_CORRELATION_ID)
