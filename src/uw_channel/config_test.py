"""Tests for the configuration module."""

import math

import numpy as np
import pytest
from pydantic import ValidationError

from uw_channel.channel.coordinates import CoordZ
from uw_channel.channel.response import DEFAULT_DELAY_PRECISION, ChannelResponse
from uw_channel.config import Config, Context


def test_config_defaults() -> None:
  """Test that default values are set correctly."""
  config = Config(name="test_run")
  assert config.name == "test_run"
  assert config.delay_precision == DEFAULT_DELAY_PRECISION
  assert config.avg_coeff == 0.0
  assert config.max_distance == math.inf
  assert config.prop_speed == 1500.0


@pytest.mark.parametrize(
  "kwargs",
  [
    {"delay_precision": 0.0},
    {"avg_coeff": 1.5},
    {"space_sampling": -1.0},
    {"shipping": 2.0},
  ],
)
def test_config_validation(kwargs: dict) -> None:
  """Test that validation works correctly."""
  with pytest.raises(ValidationError):
    Config(name="test_run", **kwargs)


def test_config_missing_name() -> None:
  """Test that missing required fields raises an error."""
  with pytest.raises(ValidationError):
    Config()  # type: ignore[call-arg]


def test_combiner_params() -> None:
  """Test that a negative equalizer time means unbounded."""
  config = Config(name="test_run", symbol_resolution=1e-4, equalizer_time=-1.0)
  params = config.combiner_params(equalizer_attenuation_db=12.0)

  assert params.symbol_resolution == 1e-4
  assert params.equalizer_time == math.inf
  assert params.equalizer_attenuation_db == 12.0


def test_underwater_from_config() -> None:
  """Test that environment parameters are forwarded."""
  config = Config(name="test_run", wind_speed=4.0, shipping=0.3, prop_speed=1480.0)
  env = config.underwater()

  assert env.wind_speed == 4.0
  assert env.shipping == 0.3
  assert env.prop_speed == 1480.0


class TestContext:
  """Tests for the run context."""

  def test_seeded_rng_is_reproducible(self) -> None:
    """Test that the same seed draws the same numbers."""
    a = Context(Config(name="a", seed=7))
    b = Context(Config(name="b", seed=7))
    np.testing.assert_array_equal(a.rng.random(4), b.rng.random(4))

  def test_cache_follows_config(self) -> None:
    """Test that the cache is built from the configuration."""
    context = Context(Config(name="test_run", avg_coeff=0.25, space_sampling=5.0))
    assert context.cache.avg_coeff == 0.25
    assert context.cache.space_sampling == 5.0

  def test_new_response_precision(self) -> None:
    """Test that new responses use the configured precision."""
    context = Context(Config(name="test_run", delay_precision=1e-4))
    assert context.new_response().delay_precision == 1e-4

  def test_reseed_clears_cache(self) -> None:
    """Test that reseeding drops cached estimates."""
    context = Context(Config(name="test_run", seed=1))
    tx = CoordZ(latitude=0.0, longitude=0.0)
    rx = CoordZ(latitude=0.0, longitude=0.01)
    context.cache.update(tx, rx, ChannelResponse.impulse())
    first = context.rng.random()

    context.reseed(1)

    assert len(context.cache) == 0
    assert context.rng.random() == first
