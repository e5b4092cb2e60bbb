"""Complex attenuation samples and the attenuation law used to sanity-check them.

An `AttenuationSample` is the dimensionless, attenuated copy of a unit pressure
sent by the transmitter. Passive propagation can only lose energy, so any sample
with magnitude above one is replaced by the value predicted by practical
spreading plus Thorp absorption, keeping its phase.

References:
  - W.H. Thorp, "Analytic description of the low-frequency attenuation
    coefficient", JASA, 1967
  - M. Stojanovic, "On the relationship between capacity and distance in an
    underwater acoustic communication channel", WUWNet, 2006
"""

from __future__ import annotations

import cmath
import logging
import math
import numbers
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
  from uw_channel.channel.response import ChannelResponse

logger = logging.getLogger(__name__)

PRACTICAL_SPREADING: float = 1.5
MIN_ATTENUATION_DB: float = 1.0

NOT_VALID = complex(math.inf, math.inf)


def thorp_absorption(frequency_hz: float) -> float:
  """Thorp absorption coefficient.

  Args:
    frequency_hz: Frequency in Hz.

  Returns:
    Absorption in dB per meter.
  """
  f = frequency_hz / 1000.0
  f2 = f**2
  if f > 0.4:
    atten = 0.11 * f2 / (1.0 + f2) + 44.0 * f2 / (4100.0 + f2) + 2.75e-4 * f2 + 0.003
  else:
    atten = 0.002 + 0.11 * f2 / (1.0 + f2) + 0.011 * f2
  return atten / 1000.0


def practical_attenuation_db(
  distance_m: float,
  frequency_hz: float,
  spreading: float = PRACTICAL_SPREADING,
) -> float:
  """Spreading plus absorption loss, floored at `MIN_ATTENUATION_DB`.

  Args:
    distance_m: Range in meters.
    frequency_hz: Frequency in Hz.
    spreading: Spreading exponent k (1 cylindrical, 1.5 practical, 2 spherical).

  Returns:
    Attenuation in dB.
  """
  if distance_m <= 0:
    return MIN_ATTENUATION_DB
  att = spreading * 10.0 * np.log10(distance_m) + distance_m * thorp_absorption(
    frequency_hz
  )
  return float(max(att, MIN_ATTENUATION_DB))


class AttenuationSample:
  """A single complex attenuation value.

  The sentinel `(+inf, +inf)` marks a sample that is not valid; `(0, 0)` is a
  silent sample.
  """

  __slots__ = ("_value",)

  def __init__(
    self, real: float | complex | AttenuationSample = 0.0, imag: float = 0.0
  ) -> None:
    if isinstance(real, AttenuationSample):
      self._value = real._value
    elif isinstance(real, numbers.Complex) and not isinstance(real, numbers.Real):
      self._value = complex(real)
    else:
      self._value = complex(float(real), float(imag))

  @classmethod
  def not_valid(cls) -> AttenuationSample:
    return cls(NOT_VALID)

  @classmethod
  def from_response(cls, response: ChannelResponse) -> AttenuationSample:
    """Coherent sum of every tap: the time-integrated pressure."""
    if not response.is_valid():
      return cls.not_valid()
    return cls(complex(response))

  @staticmethod
  def tx_loss_db_of(value: complex) -> float:
    """Transmission loss of a raw complex value in dB."""
    if value == NOT_VALID:
      return -math.inf
    if value == 0:
      return math.inf
    return float(-20.0 * np.log10(abs(value)))

  @property
  def real(self) -> float:
    return self._value.real

  @property
  def imag(self) -> float:
    return self._value.imag

  def is_valid(self) -> bool:
    return self._value != NOT_VALID

  def abs(self) -> float:
    return abs(self._value)

  def phase(self) -> float:
    return cmath.phase(self._value)

  def sqrt(self) -> AttenuationSample:
    return AttenuationSample(cmath.sqrt(self._value))

  def tx_loss_db(self) -> float:
    return self.tx_loss_db_of(self._value)

  def check_attenuation(
    self,
    distance_m: float,
    frequency_hz: float,
    spreading: float = PRACTICAL_SPREADING,
  ) -> bool:
    """Clamp a sample that shows gain instead of loss.

    If the magnitude exceeds one, it is replaced by the magnitude predicted by
    `practical_attenuation_db`; the phase is kept. Applying it twice is the same
    as applying it once.

    Args:
      distance_m: Transmitter to receiver distance in meters.
      frequency_hz: Carrier frequency in Hz.
      spreading: Spreading exponent of the attenuation law.

    Returns:
      True if the sample was corrected.
    """
    if not self.is_valid() or abs(self._value) <= 1.0:
      return False

    phase = cmath.phase(self._value)
    amplitude = 10 ** (
      practical_attenuation_db(distance_m, frequency_hz, spreading) / -20.0
    )
    self._value = cmath.rect(amplitude, phase)
    logger.debug(
      f"Clamped sample above unit magnitude: distance={distance_m}m, "
      f"frequency={frequency_hz}Hz, new tx loss={self.tx_loss_db():.2f}dB"
    )
    return True

  # Arithmetic ------------------------------------------------------------

  @staticmethod
  def _raw(other: object) -> complex | None:
    if isinstance(other, AttenuationSample):
      return other._value
    if isinstance(other, numbers.Complex):
      return complex(other)
    return None

  def __add__(self, other: object) -> AttenuationSample:
    rhs = self._raw(other)
    return NotImplemented if rhs is None else AttenuationSample(self._value + rhs)

  __radd__ = __add__

  def __sub__(self, other: object) -> AttenuationSample:
    rhs = self._raw(other)
    return NotImplemented if rhs is None else AttenuationSample(self._value - rhs)

  def __rsub__(self, other: object) -> AttenuationSample:
    lhs = self._raw(other)
    return NotImplemented if lhs is None else AttenuationSample(lhs - self._value)

  def __mul__(self, other: object) -> AttenuationSample:
    rhs = self._raw(other)
    return NotImplemented if rhs is None else AttenuationSample(self._value * rhs)

  __rmul__ = __mul__

  def __truediv__(self, other: object) -> AttenuationSample:
    rhs = self._raw(other)
    return NotImplemented if rhs is None else AttenuationSample(self._value / rhs)

  def __neg__(self) -> AttenuationSample:
    return AttenuationSample(-self._value)

  def __complex__(self) -> complex:
    return self._value

  def __abs__(self) -> float:
    return abs(self._value)

  def __eq__(self, other: object) -> bool:
    rhs = self._raw(other)
    if rhs is None:
      return NotImplemented
    return self._value == rhs

  def __repr__(self) -> str:
    return f"AttenuationSample({self._value.real!r}, {self._value.imag!r})"
