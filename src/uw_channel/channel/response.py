"""Delay-indexed channel responses (power delay profiles).

A `ChannelResponse` maps propagation delays in seconds to complex attenuation
samples. Delays are `PrecisionValue` keys sharing the response's
`delay_precision`, so arrivals closer than the precision collapse onto one tap.

Typical Usage:
  ```python
  from uw_channel.channel.response import ChannelResponse

  raw = ChannelResponse.from_arrays([0.0, 5e-5, 2e-3], [0.1, 0.05, 0.01])
  symbols = raw.coherent_sum_sample(1e-4)      # symbol-rate taps
  energy = symbols.incoherent_sum_sample(1e-3)  # phase-free power buckets
  ```
"""

from __future__ import annotations

import math
import numbers
from collections.abc import Iterable, Iterator

import numpy as np
import numpy.typing as npt

from uw_channel.channel.attenuation import (
  NOT_VALID,
  PRACTICAL_SPREADING,
  AttenuationSample,
)
from uw_channel.channel.exceptions import InvalidResponseError
from uw_channel.channel.ordered import OrderedTable
from uw_channel.channel.precision import DEFAULT_PRECISION, PrecisionValue

DEFAULT_DELAY_PRECISION: float = 1.0e-7

# Reserved delay of a response built from a single sample with no delay data.
PRESSURE_CONVERSION_DELAY: float = float(-(2**31 - 1))


class ChannelResponse:
  """Ordered mapping from delay (s) to complex attenuation.

  A response holding the not-valid sentinel at delay 0 is invalid; any other
  non-empty response is valid. Pipeline operations never modify their input:
  they return new responses.
  """

  __slots__ = ("_delay_precision", "_taps")

  def __init__(self, delay_precision: float = DEFAULT_DELAY_PRECISION) -> None:
    # Validates the tolerance.
    PrecisionValue(0.0, delay_precision)
    self._delay_precision = float(delay_precision)
    self._taps: OrderedTable[PrecisionValue, complex] = OrderedTable()

  # Factories -------------------------------------------------------------

  @classmethod
  def not_valid(
    cls, delay_precision: float = DEFAULT_DELAY_PRECISION
  ) -> ChannelResponse:
    """Response holding only the not-valid sentinel."""
    response = cls(delay_precision)
    response._taps.set(response._key(0.0), NOT_VALID)
    return response

  @classmethod
  def impulse(cls, delay_precision: float = DEFAULT_DELAY_PRECISION) -> ChannelResponse:
    """Ideal channel: a single unit tap at delay 0."""
    response = cls(delay_precision)
    response._taps.set(response._key(0.0), complex(1.0, 0.0))
    return response

  @classmethod
  def from_sample(
    cls,
    sample: AttenuationSample | complex,
    delay: float = PRESSURE_CONVERSION_DELAY,
    delay_precision: float = DEFAULT_DELAY_PRECISION,
  ) -> ChannelResponse:
    """Wrap a single attenuation sample.

    Without an explicit delay the tap sits at the reserved conversion delay and
    must be re-keyed with `rekeyed()` before use.
    """
    sample = AttenuationSample(sample)
    if not sample.is_valid():
      return cls.not_valid(delay_precision)
    response = cls(delay_precision)
    response._taps.set(response._key(delay), complex(sample))
    return response

  @classmethod
  def from_arrays(
    cls,
    delays: Iterable[float],
    samples: Iterable[complex | float],
    delay_precision: float = DEFAULT_DELAY_PRECISION,
  ) -> ChannelResponse:
    """Build a response from raw arrivals, summing arrivals on the same tap.

    Args:
      delays: Arrival delays in seconds (non-negative).
      samples: Complex attenuation of each arrival.
      delay_precision: Tolerance under which delays collapse.

    Returns:
      The accumulated response.
    """
    response = cls(delay_precision)
    for delay, sample in zip(delays, samples, strict=True):
      response.sum_into(float(delay), AttenuationSample(complex(sample)))
    return response

  # Internals -------------------------------------------------------------

  def _key(self, delay: float | PrecisionValue) -> PrecisionValue:
    return PrecisionValue(float(delay), self._delay_precision)

  def _derive(self, table: OrderedTable[PrecisionValue, complex]) -> ChannelResponse:
    response = ChannelResponse(self._delay_precision)
    response._taps = table
    return response

  @staticmethod
  def _check_tap(delay: float, sample: AttenuationSample) -> None:
    if not sample.is_valid():
      msg = f"Cannot store a not-valid sample at delay {delay}"
      raise ValueError(msg)
    if delay < 0:
      msg = f"Delay must be non-negative, got {delay}"
      raise ValueError(msg)

  # Tap access ------------------------------------------------------------

  @property
  def delay_precision(self) -> float:
    return self._delay_precision

  def insert(
    self, delay: float, sample: AttenuationSample | complex
  ) -> ChannelResponse:
    """Store a tap, replacing any tap at an equal delay.

    Raises:
      ValueError: If the delay is negative or the sample is not valid.
    """
    sample = AttenuationSample(sample)
    self._check_tap(float(delay), sample)
    self._taps.set(self._key(delay), complex(sample))
    return self

  def sum_into(self, delay: float, sample: AttenuationSample | complex) -> None:
    """Complex-add a sample into the tap at `delay`, creating it if needed.

    Raises:
      ValueError: If the delay is negative or the sample is not valid.
    """
    sample = AttenuationSample(sample)
    self._check_tap(float(delay), sample)
    self._taps.merge(self._key(delay), complex(sample), lambda a, b: a + b)

  def find(self, delay: float) -> AttenuationSample | None:
    value = self._taps.get(self._key(delay))
    return None if value is None else AttenuationSample(value)

  def erase(self, delay: float) -> ChannelResponse:
    self._taps.pop(self._key(delay))
    return self

  def at(self, index: int) -> tuple[float, AttenuationSample] | None:
    """Tap at position `index` in delay order, or None when out of range."""
    if index < 0 or index >= len(self._taps):
      return None
    return (
      self._taps.key_at(index).value,
      AttenuationSample(self._taps.value_at(index)),
    )

  def clear(self) -> None:
    self._taps.clear()

  def items(self) -> Iterator[tuple[float, AttenuationSample]]:
    for key, value in self._taps.items():
      yield key.value, AttenuationSample(value)

  def keys(self) -> list[PrecisionValue]:
    return self._taps.keys()

  def __iter__(self) -> Iterator[float]:
    return (key.value for key in self._taps.keys())

  def __len__(self) -> int:
    return len(self._taps)

  def __contains__(self, delay: object) -> bool:
    if not isinstance(delay, (numbers.Real, PrecisionValue)):
      return False
    return self._taps.locate(self._key(delay))[1]

  def __getitem__(self, delay: float) -> AttenuationSample:
    sample = self.find(delay)
    if sample is None:
      raise KeyError(delay)
    return sample

  @property
  def min_delay(self) -> float:
    if not self._taps:
      msg = "Empty response has no delays"
      raise InvalidResponseError(msg)
    return self._taps.key_at(0).value

  @property
  def max_delay(self) -> float:
    if not self._taps:
      msg = "Empty response has no delays"
      raise InvalidResponseError(msg)
    return self._taps.key_at(len(self._taps) - 1).value

  def delays(self) -> npt.NDArray[np.float64]:
    return np.array([key.value for key in self._taps.keys()], dtype=np.float64)

  def samples(self) -> npt.NDArray[np.complex128]:
    return np.array(self._taps.values(), dtype=np.complex128)

  def tx_loss_db(self) -> npt.NDArray[np.float64]:
    """Transmission loss of every tap in dB, in delay order."""
    return np.array(
      [AttenuationSample.tx_loss_db_of(value) for value in self._taps.values()],
      dtype=np.float64,
    )

  # State -----------------------------------------------------------------

  def is_valid(self) -> bool:
    if not self._taps:
      return False
    value = self._taps.get(self._key(0.0))
    return value is None or value != NOT_VALID

  def is_converted_from_pressure(self) -> bool:
    """True for a single-sample response still at the reserved delay."""
    return len(self._taps) == 1 and self._taps.key_at(0) == PrecisionValue(
      PRESSURE_CONVERSION_DELAY, DEFAULT_PRECISION
    )

  def copy(self) -> ChannelResponse:
    return self._derive(self._taps.copy())

  def rekeyed(self, delay: float) -> ChannelResponse:
    """Move a single-tap response to `delay`.

    Raises:
      InvalidResponseError: If the response does not hold exactly one tap.
    """
    if len(self._taps) != 1:
      msg = f"Only single-tap responses can be re-keyed, got {len(self._taps)} taps"
      raise InvalidResponseError(msg)
    response = ChannelResponse(self._delay_precision)
    response.insert(delay, self._taps.value_at(0))
    return response

  def set_delay_precision(self, precision: float) -> ChannelResponse:
    """Re-key every tap under a new tolerance; on collisions the last value wins."""
    PrecisionValue(0.0, precision)
    table: OrderedTable[PrecisionValue, complex] = OrderedTable()
    for key, value in self._taps.items():
      table.set(PrecisionValue(key.value, precision), value)
    self._delay_precision = float(precision)
    self._taps = table
    return self

  # Sampling --------------------------------------------------------------

  def _buckets(self, resolution: float) -> Iterator[tuple[PrecisionValue, complex]]:
    """Yield (bucket start, sample) with buckets opened from the first tap.

    A new bucket opens once a delay exceeds the current start plus resolution.
    """
    if not self._taps:
      return
    step = PrecisionValue(resolution, self._delay_precision)
    bucket_start = self._taps.key_at(0)
    for key, value in self._taps.items():
      if key > bucket_start + step:
        bucket_start = key
      yield bucket_start, value

  def coherent_sum_sample(self, resolution: float) -> ChannelResponse:
    """Complex-sum taps into buckets of width `resolution`.

    Phase is preserved, so taps in a bucket may interfere destructively.
    """
    table: OrderedTable[PrecisionValue, complex] = OrderedTable()
    for bucket_start, value in self._buckets(resolution):
      table.merge(bucket_start, value, lambda a, b: a + b)
    return self._derive(table)

  def incoherent_sum_sample(self, resolution: float) -> ChannelResponse:
    """Power-sum taps into buckets of width `resolution` (phase discarded)."""
    powers: OrderedTable[PrecisionValue, float] = OrderedTable()
    for bucket_start, value in self._buckets(resolution):
      powers.merge(bucket_start, abs(value) ** 2, lambda a, b: a + b)

    table: OrderedTable[PrecisionValue, complex] = OrderedTable()
    for key, power in powers.items():
      table.set(key, complex(math.sqrt(power), 0.0))
    return self._derive(table)

  def crop(self, start: float, end: float) -> ChannelResponse:
    """Taps with `start <= delay < end`."""
    lower = self._key(start)
    upper = self._key(end)
    table: OrderedTable[PrecisionValue, complex] = OrderedTable()
    for key, value in self._taps.items():
      if key >= lower and key < upper:
        table.set(key, value)
    return self._derive(table)

  def lower_bound_tx_loss(
    self, threshold_db: float
  ) -> tuple[float, AttenuationSample] | None:
    """First tap, in delay order, whose transmission loss is <= `threshold_db`."""
    for key, value in self._taps.items():
      if AttenuationSample.tx_loss_db_of(value) <= threshold_db:
        return key.value, AttenuationSample(value)
    return None

  def check_pressure_attenuation(
    self,
    distance_m: float,
    frequency_hz: float,
    spreading: float = PRACTICAL_SPREADING,
  ) -> bool:
    """Clamp every tap with gain; returns True if any tap changed."""
    corrected = False
    for index, value in enumerate(self._taps.values()):
      sample = AttenuationSample(value)
      if sample.check_attenuation(distance_m, frequency_hz, spreading):
        self._taps.replace_at(index, complex(sample))
        corrected = True
    return corrected

  # Arithmetic ------------------------------------------------------------

  def _combine_response(self, other: ChannelResponse, sign: float) -> ChannelResponse:
    table = self._taps.copy()
    for key, value in other._taps.items():
      table.merge(self._key(key), sign * value, lambda a, b: a + b)
    return self._derive(table)

  def _map(self, op) -> ChannelResponse:
    table: OrderedTable[PrecisionValue, complex] = OrderedTable()
    for key, value in self._taps.items():
      table.set(key, op(value))
    return self._derive(table)

  def __add__(self, other: object) -> ChannelResponse:
    if isinstance(other, ChannelResponse):
      return self._combine_response(other, 1.0)
    if isinstance(other, (numbers.Complex, AttenuationSample)):
      scalar = complex(other)
      return self._map(lambda value: value + scalar)
    return NotImplemented

  def __radd__(self, other: object) -> ChannelResponse:
    return self.__add__(other)

  def __sub__(self, other: object) -> ChannelResponse:
    if isinstance(other, ChannelResponse):
      return self._combine_response(other, -1.0)
    if isinstance(other, (numbers.Complex, AttenuationSample)):
      scalar = complex(other)
      return self._map(lambda value: value - scalar)
    return NotImplemented

  def __mul__(self, other: object) -> ChannelResponse:
    if isinstance(other, (numbers.Complex, AttenuationSample)):
      scalar = complex(other)
      return self._map(lambda value: value * scalar)
    return NotImplemented

  __rmul__ = __mul__

  def __truediv__(self, other: object) -> ChannelResponse:
    if isinstance(other, (numbers.Complex, AttenuationSample)):
      scalar = complex(other)
      return self._map(lambda value: value / scalar)
    return NotImplemented

  def __complex__(self) -> complex:
    return complex(sum(self._taps.values(), complex(0.0, 0.0)))

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, ChannelResponse):
      return NotImplemented
    if self is other:
      return True
    if len(self._taps) != len(other._taps):
      return False
    return all(
      lkey == rkey and lvalue == rvalue
      for (lkey, lvalue), (rkey, rvalue) in zip(
        self._taps.items(), other._taps.items(), strict=True
      )
    )

  __hash__ = None  # type: ignore[assignment]

  # Reporting -------------------------------------------------------------

  def summary(self) -> str:
    """One-line description used in log messages."""
    if not self._taps:
      return "size = 0"
    first = self._taps.value_at(0)
    last = self._taps.value_at(len(self._taps) - 1)
    return (
      f"size = {len(self._taps)}; min delay = {self.min_delay}; "
      f"tx loss = {AttenuationSample.tx_loss_db_of(first):.2f}dB; "
      f"max delay = {self.max_delay}; "
      f"tx loss = {AttenuationSample.tx_loss_db_of(last):.2f}dB"
    )

  def __repr__(self) -> str:
    taps = ", ".join(f"{key.value!r}: {value!r}" for key, value in self._taps.items())
    return f"ChannelResponse({{{taps}}}, delay_precision={self._delay_precision!r})"
