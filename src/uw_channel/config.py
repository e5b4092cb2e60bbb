"""Configuration module for uw_channel."""

import logging
import math

import numpy as np
from pydantic import BaseModel, Field

from uw_channel.channel.combiner import CombinerParams
from uw_channel.channel.estimator import EstimationCache
from uw_channel.channel.response import DEFAULT_DELAY_PRECISION, ChannelResponse
from uw_channel.channel.underwater import Underwater


class Config(BaseModel):
  """Configuration of a channel simulation run.

  Attributes:
    name: The name of the simulation run.
    delay_precision: Tolerance under which delays collapse, in seconds.
    space_sampling: Spatial tolerance of the estimation cache, in meters.
    avg_coeff: Moving-average weight of stored estimates.
    symbol_resolution: Coherent sampling step, in seconds.
    equalizer_time: Equalizer window length in seconds; negative means
      unbounded.
    equalizer_snr_threshold_db: SNR a tap needs to open the equalizer window.
    max_distance: Receivers farther than this (meters) are not simulated.
    practical_spreading: Spreading exponent of the attenuation law.
    prop_speed: Sound speed in m/s.
    wind_speed: Surface wind speed in m/s.
    shipping: Shipping activity factor in [0, 1].
    seed: Seed of the run's random generator.
  """

  name: str = Field(..., description="The name of the simulation run.")
  delay_precision: float = Field(DEFAULT_DELAY_PRECISION, gt=0.0)
  space_sampling: float = Field(0.0, ge=0.0)
  avg_coeff: float = Field(0.0, ge=0.0, le=1.0)
  symbol_resolution: float = Field(0.0, ge=0.0)
  equalizer_time: float = Field(0.0)
  equalizer_snr_threshold_db: float = Field(0.0)
  max_distance: float = Field(math.inf, gt=0.0)
  practical_spreading: float = Field(1.5, gt=0.0)
  prop_speed: float = Field(1500.0, gt=0.0)
  wind_speed: float = Field(0.0, ge=0.0)
  shipping: float = Field(0.0, ge=0.0, le=1.0)
  seed: int | None = Field(None, description="Random generator seed.")

  def combiner_params(self, equalizer_attenuation_db: float = 0.0) -> CombinerParams:
    """Reduction parameters for a given equalizer attenuation threshold."""
    return CombinerParams.from_legacy(
      symbol_resolution=self.symbol_resolution,
      equalizer_time=self.equalizer_time,
      equalizer_attenuation_db=equalizer_attenuation_db,
    )

  def underwater(self) -> Underwater:
    return Underwater(
      wind_speed=self.wind_speed,
      shipping=self.shipping,
      practical_spreading=self.practical_spreading,
      prop_speed=self.prop_speed,
    )


class Context:
  """Explicit bundle of run-wide state.

  Holds what would otherwise be process-wide globals: the configuration, the
  random generator, the logger, and the estimation cache.
  """

  def __init__(
    self,
    config: Config,
    rng: np.random.Generator | None = None,
    logger: logging.Logger | None = None,
  ) -> None:
    self.config = config
    self.rng = rng if rng is not None else np.random.default_rng(config.seed)
    self.logger = logger if logger is not None else logging.getLogger("uw_channel")
    self.cache = EstimationCache(
      avg_coeff=config.avg_coeff, space_sampling=config.space_sampling
    )

  def new_response(self) -> ChannelResponse:
    """Empty response using the configured delay precision."""
    return ChannelResponse(self.config.delay_precision)

  def reseed(self, seed: int | None) -> None:
    """Re-randomize the environment; cached estimates no longer apply."""
    self.rng = np.random.default_rng(seed)
    self.cache.reset()
    self.logger.info(f"Context reseeded with {seed}, estimation cache cleared")
