"""Underwater acoustic link-budget helpers.

Ambient noise follows the empirical model used in underwater network
simulation, with four sources (frequencies in kHz, levels in dB re uPa/Hz):

  - Turbulence: 17 - 30 log f
  - Shipping:   40 + 20 (s - 0.5) + 26 log f - 60 log (f + 0.03)
  - Wind:       50 + 7.5 w^0.5 + 20 log f - 40 log (f + 0.4)
  - Thermal:    -15 + 20 log f

where s in [0, 1] is the shipping activity factor and w the wind speed in m/s.

References:
  - R. Coates, "Underwater Acoustic Systems", Wiley, 1989
  - M. Stojanovic, "On the relationship between capacity and distance in an
    underwater acoustic communication channel", WUWNet, 2006
"""

import logging

import numpy as np
from pydantic import BaseModel, Field

from uw_channel.channel.attenuation import PRACTICAL_SPREADING, practical_attenuation_db
from uw_channel.channel.coordinates import Coordinate
from uw_channel.channel.exceptions import DegenerateParametersError

logger = logging.getLogger(__name__)


def center_frequency(frequency_hz: float, bandwidth_hz: float) -> float:
  """Geometric mean of the band edges.

  Raises:
    DegenerateParametersError: If a band edge is not strictly positive.
  """
  upper = frequency_hz + bandwidth_hz / 2.0
  lower = frequency_hz - bandwidth_hz / 2.0
  if upper <= 0 or lower <= 0:
    msg = (
      f"Band edges must be positive: {frequency_hz} Hz with {bandwidth_hz} Hz "
      "bandwidth"
    )
    raise DegenerateParametersError(msg)
  return float(np.sqrt(upper * lower))


class Underwater(BaseModel):
  """Environment parameters of the acoustic link budget.

  Attributes:
    wind_speed: Wind speed at the surface in m/s.
    shipping: Shipping activity factor in [0, 1].
    practical_spreading: Spreading exponent used in attenuation.
    prop_speed: Sound speed used for propagation delays in m/s.
  """

  wind_speed: float = Field(default=0.0, ge=0.0)
  shipping: float = Field(default=0.0, ge=0.0, le=1.0)
  practical_spreading: float = Field(default=PRACTICAL_SPREADING, gt=0.0)
  prop_speed: float = Field(default=1500.0, gt=0.0)

  model_config = {"frozen": True}

  def noise_psd_db(self, frequency_khz: float) -> float:
    """Ambient noise power spectral density in dB re uPa/Hz."""
    if frequency_khz <= 0:
      msg = f"Frequency must be positive, got {frequency_khz} kHz"
      raise DegenerateParametersError(msg)
    f = frequency_khz
    turbulence = 17.0 - 30.0 * np.log10(f)
    shipping = (
      40.0
      + 20.0 * (self.shipping - 0.5)
      + 26.0 * np.log10(f)
      - 60.0 * np.log10(f + 0.03)
    )
    wind = (
      50.0
      + 7.5 * np.sqrt(self.wind_speed)
      + 20.0 * np.log10(f)
      - 40.0 * np.log10(f + 0.4)
    )
    thermal = -15.0 + 20.0 * np.log10(f)
    levels = np.array([turbulence, shipping, wind, thermal])
    return float(10.0 * np.log10(np.sum(10 ** (levels / 10.0))))

  def noise_power_db(self, frequency_hz: float, bandwidth_hz: float) -> float:
    """Noise power over the band in dB, assuming a flat PSD at the center."""
    psd_db = self.noise_psd_db(frequency_hz / 1000.0)
    return float(10.0 * np.log10(bandwidth_hz * 10 ** (psd_db / 10.0)))

  def attenuation_db(self, distance_m: float, frequency_hz: float) -> float:
    return practical_attenuation_db(distance_m, frequency_hz, self.practical_spreading)

  def propagation_delay(self, tx: Coordinate, rx: Coordinate) -> float:
    """Straight-line propagation delay between two locations in seconds."""
    return tx.cartesian_distance(rx) / self.prop_speed

  def equalizer_attenuation_db(
    self,
    snr_threshold_db: float,
    tx_power: float,
    frequency_hz: float,
    bandwidth_hz: float,
  ) -> float:
    """Largest transmission loss that still meets the SNR threshold.

    A tap weaker than this cannot be detected, so it cannot open the
    equalizer window.

    Args:
      snr_threshold_db: Minimum SNR of a detectable tap in dB.
      tx_power: Transmitted power, linear, in the noise reference unit.
      frequency_hz: Center frequency in Hz.
      bandwidth_hz: Signal bandwidth in Hz.

    Returns:
      Attenuation threshold in dB, floored at 0.
    """
    if tx_power <= 0:
      msg = f"Transmit power must be positive, got {tx_power}"
      raise DegenerateParametersError(msg)
    noise_db = self.noise_power_db(frequency_hz, bandwidth_hz)
    threshold = -(snr_threshold_db - 10.0 * np.log10(tx_power) + noise_db)
    logger.debug(
      f"Equalizer threshold: tx power {10.0 * np.log10(tx_power):.2f}dB, "
      f"noise {noise_db:.2f}dB, attenuation {threshold:.2f}dB"
    )
    return float(max(threshold, 0.0))
