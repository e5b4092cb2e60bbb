"""Per-transmission channel processing.

`ChannelLink` is what a channel module runs for every transmitted packet:

1. Keep the receivers within `max_distance` of the source.
2. Ask the upstream provider (ray tracer plus environmental databases) for the
   raw response of every link.
3. Reduce each raw response with `combine`, clamp taps that show gain, and
   refresh the estimation cache.
4. Emit one `TapArrival` per reduced tap: a copy of the packet reaching the
   receiver after the tap delay with the tap attenuation.

The provider is consumed through the `ResponseProvider` protocol; this module
never talks to the ray tracer directly.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Protocol

import numpy as np
import numpy.typing as npt
from pydantic import BaseModel, Field
from scipy import signal as scipy_signal

from uw_channel.channel.attenuation import AttenuationSample
from uw_channel.channel.combiner import CombinerParams, combine
from uw_channel.channel.coordinates import Coordinate, CoordZ
from uw_channel.channel.exceptions import InvalidResponseError
from uw_channel.channel.response import ChannelResponse
from uw_channel.channel.underwater import center_frequency

if TYPE_CHECKING:
  from uw_channel.config import Context

logger = logging.getLogger(__name__)

LinkPair = tuple[Coordinate, Coordinate]


class ResponseProvider(Protocol):
  """Upstream source of raw channel responses."""

  def compute(
    self, pairs: Sequence[LinkPair], frequency_hz: float, time: float
  ) -> list[ChannelResponse]:
    """Return one raw response per (tx, rx) pair, in order."""


class Transmission(BaseModel):
  """A packet leaving a node.

  Attributes:
    source: Transmitter location.
    receivers: Receiver locations by node id.
    frequency_hz: Carrier frequency in Hz.
    bandwidth_hz: Signal bandwidth in Hz; 0 for a pure tone.
    tx_power: Transmitted power, linear, in the noise reference unit.
    time: Simulation time of the transmission in seconds.
  """

  source: CoordZ
  receivers: dict[int, CoordZ]
  frequency_hz: float = Field(gt=0.0)
  bandwidth_hz: float = Field(default=0.0, ge=0.0)
  tx_power: float = Field(default=1.0, gt=0.0)
  time: float = 0.0

  model_config = {"frozen": True}


class TapArrival(BaseModel):
  """A copy of a transmission reaching a receiver through one tap.

  Attributes:
    receiver: Receiver node id.
    delay: Arrival delay in seconds after the transmission.
    attenuation: Complex attenuation of the tap, clamped to physical loss.
    frequency_hz: Frequency the attenuation was computed at.
  """

  receiver: int
  delay: float = Field(ge=0.0)
  attenuation: AttenuationSample
  frequency_hz: float

  model_config = {"frozen": True, "arbitrary_types_allowed": True}

  @property
  def gain(self) -> float:
    """Power gain of the tap."""
    return self.attenuation.abs() ** 2

  @property
  def tx_loss_db(self) -> float:
    return self.attenuation.tx_loss_db()


class ChannelLink:
  """Turns transmissions into per-receiver tap arrivals.

  Raw responses are reduced on a thread pool when `max_workers > 1`; the
  cache is refreshed from the calling thread in link order.
  """

  def __init__(
    self,
    provider: ResponseProvider,
    context: Context,
    max_workers: int = 1,
  ) -> None:
    """Initialize the channel link.

    Args:
      provider: Source of raw responses.
      context: Run context holding configuration and estimation cache.
      max_workers: Number of threads used to reduce responses.
    """
    if max_workers < 1:
      msg = f"max_workers must be >= 1, got {max_workers}"
      raise ValueError(msg)
    self.provider = provider
    self.context = context
    self.config = context.config
    self.cache = context.cache
    self.underwater = context.config.underwater()
    self.max_workers = max_workers

  def reachable(
    self, source: Coordinate, receivers: dict[int, CoordZ]
  ) -> list[tuple[int, CoordZ]]:
    """Receivers within `max_distance` of the source."""
    selected = []
    for node_id, location in receivers.items():
      distance = source.cartesian_distance(location)
      if distance <= self.config.max_distance:
        selected.append((node_id, location))
      else:
        logger.debug(
          f"Receiver {node_id} at {distance:.1f}m beyond max distance "
          f"{self.config.max_distance}m"
        )
    return selected

  def combiner_params(
    self, transmission: Transmission, frequency_hz: float
  ) -> CombinerParams:
    """Reduction parameters for a transmission, from its link budget."""
    if transmission.bandwidth_hz > 0:
      threshold = self.underwater.equalizer_attenuation_db(
        self.config.equalizer_snr_threshold_db,
        transmission.tx_power,
        frequency_hz,
        transmission.bandwidth_hz,
      )
    else:
      threshold = 0.0
    return self.config.combiner_params(threshold)

  def _reduce_one(
    self, pair: LinkPair, raw: ChannelResponse, params: CombinerParams
  ) -> ChannelResponse | None:
    tx, rx = pair
    try:
      return combine(raw, params, self.underwater.propagation_delay(tx, rx))
    except InvalidResponseError:
      logger.warning(f"Dropping link {tx} -> {rx}: no valid raw response")
      return None

  def reduce(
    self,
    pairs: Sequence[LinkPair],
    raws: Sequence[ChannelResponse],
    params: CombinerParams,
    frequency_hz: float,
  ) -> list[ChannelResponse | None]:
    """Reduce raw responses and refresh the estimation cache.

    Reduced taps that show gain are clamped to the practical loss of the link
    before they are cached, so the cache and the arrivals agree.

    Args:
      pairs: (tx, rx) locations of each link.
      raws: Raw response of each link, same order as `pairs`.
      params: Reduction parameters.
      frequency_hz: Frequency the responses were computed at.

    Returns:
      Reduced response per link; None where the raw response was not valid.
    """
    if len(pairs) != len(raws):
      msg = f"Got {len(raws)} responses for {len(pairs)} links"
      raise ValueError(msg)

    if self.max_workers > 1 and len(pairs) > 1:
      with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
        reduced = list(
          pool.map(lambda pair, raw: self._reduce_one(pair, raw, params), pairs, raws)
        )
    else:
      reduced = [self._reduce_one(pair, raw, params) for pair, raw in zip(pairs, raws)]

    for (tx, rx), response in zip(pairs, reduced, strict=True):
      if response is None:
        continue
      if response.check_pressure_attenuation(
        tx.cartesian_distance(rx), frequency_hz, self.underwater.practical_spreading
      ):
        logger.debug(f"Clamped taps with gain on link {tx} -> {rx}")
      self.cache.update(tx, rx, response)
    return reduced

  def process(self, transmission: Transmission) -> list[TapArrival]:
    """Run the full chain for one transmission.

    Args:
      transmission: The transmitted packet.

    Returns:
      Tap arrivals for every reachable receiver, in receiver then delay order.
    """
    if transmission.bandwidth_hz > 0:
      frequency = center_frequency(transmission.frequency_hz, transmission.bandwidth_hz)
    else:
      frequency = transmission.frequency_hz

    receivers = self.reachable(transmission.source, transmission.receivers)
    if not receivers:
      return []

    pairs: list[LinkPair] = [
      (transmission.source, location) for _, location in receivers
    ]
    raws = self.provider.compute(pairs, frequency, transmission.time)
    params = self.combiner_params(transmission, frequency)
    reduced = self.reduce(pairs, raws, params, frequency)

    arrivals = []
    for (node_id, _), response in zip(receivers, reduced, strict=True):
      if response is None:
        continue
      for delay, sample in response.items():
        arrivals.append(
          TapArrival(
            receiver=node_id, delay=delay, attenuation=sample, frequency_hz=frequency
          )
        )
        logger.debug(
          f"Arrival at node {node_id}: delay={delay:.6f}s, "
          f"tx loss={sample.tx_loss_db():.2f}dB"
        )
    return arrivals

  def estimate(self, tx: Coordinate, rx: Coordinate) -> ChannelResponse | None:
    """Cached estimate for a link, or None."""
    return self.cache.get(tx, rx)


def apply_response(
  signal: npt.NDArray[np.complex64],
  response: ChannelResponse,
  sample_rate: int,
  relative: bool = True,
) -> npt.NDArray[np.complex64]:
  """Apply a channel response to a complex baseband signal.

  The response is realized as a tapped delay line with integer sample delays,
  so taps closer than one sample add on the same coefficient.

  Args:
    signal: Complex baseband signal.
    response: Valid channel response.
    sample_rate: Sample rate in Hz.
    relative: Measure delays from the first tap instead of from transmission.

  Returns:
    Received signal, same length as the input.

  Raises:
    ValueError: If the sample rate is not positive.
    InvalidResponseError: If the response is not valid or not yet re-keyed.
  """
  if sample_rate <= 0:
    msg = f"Sample rate must be positive, got {sample_rate}"
    raise ValueError(msg)
  if not response.is_valid():
    msg = "Cannot apply an empty or not-valid response"
    raise InvalidResponseError(msg)

  delays = response.delays()
  if relative:
    delays = delays - delays[0]
  if not np.all(np.isfinite(delays)) or np.any(delays < 0):
    msg = "Response delays must be finite and non-negative"
    raise InvalidResponseError(msg)

  indices = np.round(delays * sample_rate).astype(np.int64)
  taps = np.zeros(int(indices.max()) + 1, dtype=np.complex128)
  np.add.at(taps, indices, response.samples())

  return scipy_signal.lfilter(taps, [1.0], signal).astype(np.complex64)
