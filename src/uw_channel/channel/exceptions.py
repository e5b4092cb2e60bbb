"""Exceptions raised by the channel response pipeline."""


class ChannelError(Exception):
  """Base exception for all channel-response errors."""


class InvalidResponseError(ChannelError, ValueError):
  """Raised when an empty or not-valid response reaches a stage that needs data.

  Callers are expected to fall back to a fresh computation of the channel.
  """


class DegenerateParametersError(ChannelError, ValueError):
  """Raised for malformed configuration values (negative tolerances and such).

  These indicate a configuration bug and are raised at construction time,
  never in the middle of a pipeline run.
  """
