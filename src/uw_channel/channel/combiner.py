"""Reduction of dense ray-traced responses to symbol-rate, equalizer-aware ones.

The raw output of a ray tracer holds one tap per eigenray. A receiver only sees
the channel at its symbol rate, and its equalizer can only exploit phase within
a limited window. `combine` models both effects:

1. Taps closer than one symbol are combined coherently (complex sum).
2. Energy inside the equalizer window, starting at the first tap strong enough
   to be detected, is combined incoherently (power sum) into one tap.
3. Energy after the window is kept tap by tap as interference.

Typical Usage:
  ```python
  params = CombinerParams(
    symbol_resolution=1e-4, equalizer_time=1e-3, equalizer_attenuation_db=0.0
  )
  reduced = combine(raw, params)
  ```
"""

import logging
import math

from pydantic import BaseModel, Field, field_validator

from uw_channel.channel.exceptions import InvalidResponseError
from uw_channel.channel.response import ChannelResponse

logger = logging.getLogger(__name__)


class CombinerParams(BaseModel):
  """Timing and threshold parameters of the response reduction.

  Attributes:
    symbol_resolution: Coherent bucket width in seconds; 0 disables symbol
      sampling.
    equalizer_time: Equalizer window length in seconds. 0 means no incoherent
      combining, +inf means the equalizer reaches every arrival.
    equalizer_attenuation_db: Transmission loss a tap must not exceed to open
      the equalizer window; 0 opens it at the first tap.
  """

  symbol_resolution: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
  equalizer_time: float = Field(default=0.0, ge=0.0)
  equalizer_attenuation_db: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)

  model_config = {"frozen": True}

  @field_validator("equalizer_time")
  @classmethod
  def _reject_nan(cls, value: float) -> float:
    if math.isnan(value):
      msg = "equalizer_time must be a number or +inf"
      raise ValueError(msg)
    return value

  @classmethod
  def from_legacy(
    cls,
    symbol_resolution: float = 0.0,
    equalizer_time: float = 0.0,
    equalizer_attenuation_db: float = 0.0,
  ) -> "CombinerParams":
    """Build parameters where a negative equalizer time means unbounded.

    Negative thresholds are clipped to 0, as when they are derived from a link
    budget that already clears the SNR target.
    """
    if equalizer_time < 0:
      equalizer_time = math.inf
    return cls(
      symbol_resolution=symbol_resolution,
      equalizer_time=equalizer_time,
      equalizer_attenuation_db=max(equalizer_attenuation_db, 0.0),
    )

  @property
  def windowed(self) -> bool:
    """True when the equalizer window splits the response in two parts."""
    return math.isfinite(self.equalizer_time) and self.equalizer_time != 0


def combine(
  raw: ChannelResponse,
  params: CombinerParams,
  propagation_delay: float | None = None,
) -> ChannelResponse:
  """Turn a dense response into a symbol-rate, equalizer-partitioned one.

  The function is pure: `raw` is never modified and the result never shares
  state with it, so it is safe to call from several threads.

  Args:
    raw: Response as produced by the ray tracer.
    params: Reduction parameters.
    propagation_delay: Delay in seconds used to re-key a response that was
      converted from a single sample.

  Returns:
    The reduced response.

  Raises:
    InvalidResponseError: If `raw` is empty or not valid, or if it was
      converted from a single sample and no propagation delay is given.
  """
  if not raw.is_valid():
    msg = "Cannot combine an empty or not-valid response"
    raise InvalidResponseError(msg)

  if raw.is_converted_from_pressure():
    if propagation_delay is None:
      msg = "Response converted from a single sample needs a propagation delay"
      raise InvalidResponseError(msg)
    return raw.rekeyed(propagation_delay)

  if len(raw) == 1:
    return raw.copy()

  if params.symbol_resolution > 0:
    coherent = raw.coherent_sum_sample(params.symbol_resolution)
  else:
    coherent = raw
  logger.debug(f"Symbol sampled response: {coherent.summary()}")

  window_start = coherent.min_delay
  if params.equalizer_attenuation_db > 0:
    first_strong = coherent.lower_bound_tx_loss(params.equalizer_attenuation_db)
    if first_strong is not None:
      window_start = first_strong[0]

  if params.windowed:
    window_end = window_start + params.equalizer_time
    in_window = coherent.crop(window_start, window_end)
    post_window = coherent.crop(window_end, math.inf)
  else:
    in_window = coherent
    post_window = ChannelResponse.not_valid(coherent.delay_precision)

  if in_window.is_valid():
    logger.debug(f"Response inside equalizer window: {in_window.summary()}")
  if post_window.is_valid():
    logger.debug(f"Response after equalizer window: {post_window.summary()}")

  if params.equalizer_time != 0:
    if in_window.is_valid():
      final = in_window.incoherent_sum_sample(params.equalizer_time)
      if post_window.is_valid():
        final = final + post_window
    else:
      final = post_window
  else:
    final = in_window

  if final is raw:
    final = raw.copy()

  logger.debug(f"Final response: {final.summary()}")
  return final
