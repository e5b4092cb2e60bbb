"""Tests for attenuation samples and the practical attenuation law."""

import cmath
import math

import pytest

from uw_channel.channel.attenuation import (
  MIN_ATTENUATION_DB,
  AttenuationSample,
  practical_attenuation_db,
  thorp_absorption,
)
from uw_channel.channel.response import ChannelResponse


class TestAttenuationLaw:
  """Tests for Thorp absorption and practical spreading."""

  def test_thorp_low_frequency_branch(self) -> None:
    """Test the low-frequency formula at 0 Hz."""
    assert thorp_absorption(0.0) == pytest.approx(0.002 / 1000.0)

  def test_thorp_high_frequency_branch(self) -> None:
    """Test the high-frequency formula at 10 kHz."""
    f2 = 100.0
    expected = 0.11 * f2 / (1 + f2) + 44.0 * f2 / (4100 + f2) + 2.75e-4 * f2 + 0.003
    assert thorp_absorption(10_000.0) == pytest.approx(expected / 1000.0)

  def test_absorption_grows_with_frequency(self) -> None:
    """Test that higher frequencies are absorbed more."""
    assert thorp_absorption(50_000.0) > thorp_absorption(10_000.0)

  def test_practical_attenuation(self) -> None:
    """Test spreading plus absorption at 1 km."""
    expected = 1.5 * 10.0 * 3.0 + 1000.0 * thorp_absorption(10_000.0)
    assert practical_attenuation_db(1000.0, 10_000.0) == pytest.approx(expected)

  def test_spreading_exponent(self) -> None:
    """Test that spherical spreading attenuates more than cylindrical."""
    assert practical_attenuation_db(1000.0, 10_000.0, 2.0) > practical_attenuation_db(
      1000.0, 10_000.0, 1.0
    )

  @pytest.mark.parametrize("distance", [0.0, -5.0, 1.0])
  def test_attenuation_floor(self, distance: float) -> None:
    """Test that attenuation never drops below the floor."""
    assert practical_attenuation_db(distance, 100.0) == MIN_ATTENUATION_DB


class TestAttenuationSample:
  """Tests for AttenuationSample."""

  def test_validity(self) -> None:
    """Test the not-valid sentinel and the silent sample."""
    assert not AttenuationSample.not_valid().is_valid()
    assert AttenuationSample().is_valid()
    assert AttenuationSample(0.5, -0.5).is_valid()

  def test_construction(self) -> None:
    """Test the accepted constructor arguments."""
    assert complex(AttenuationSample(1.0, 2.0)) == complex(1.0, 2.0)
    assert complex(AttenuationSample(3 + 4j)) == complex(3.0, 4.0)
    assert AttenuationSample(AttenuationSample(0.1)) == 0.1

  def test_tx_loss(self) -> None:
    """Test transmission loss in dB including the edge cases."""
    assert AttenuationSample(0.1).tx_loss_db() == pytest.approx(20.0)
    assert AttenuationSample(0.0, 0.01).tx_loss_db() == pytest.approx(40.0)
    assert AttenuationSample().tx_loss_db() == math.inf
    assert AttenuationSample.not_valid().tx_loss_db() == -math.inf

  def test_magnitude_and_phase(self) -> None:
    """Test polar accessors."""
    sample = AttenuationSample(0.0, 2.0)
    assert sample.abs() == pytest.approx(2.0)
    assert abs(sample) == pytest.approx(2.0)
    assert sample.phase() == pytest.approx(math.pi / 2)
    assert complex(sample.sqrt()) == pytest.approx(cmath.sqrt(2j))

  def test_arithmetic(self) -> None:
    """Test complex arithmetic with samples and numbers."""
    a = AttenuationSample(1.0, 1.0)
    b = AttenuationSample(1.0, -1.0)

    assert a + b == 2.0
    assert a - b == 2j
    assert a * b == 2.0
    assert a / 2 == complex(0.5, 0.5)
    assert 2 * a == complex(2.0, 2.0)
    assert -a == complex(-1.0, -1.0)

  def test_from_response(self) -> None:
    """Test the time-integrated pressure of a response."""
    response = ChannelResponse.from_arrays([0.0, 1e-3], [0.1, 0.2j])
    assert AttenuationSample.from_response(response) == complex(0.1, 0.2)
    assert not AttenuationSample.from_response(ChannelResponse()).is_valid()


class TestCheckAttenuation:
  """Tests for clamping samples that show gain."""

  def test_clamps_gain(self) -> None:
    """Test that a magnitude above one is replaced by the law."""
    sample = AttenuationSample(2.0)
    corrected = sample.check_attenuation(1000.0, 10_000.0)

    expected = 10 ** (-practical_attenuation_db(1000.0, 10_000.0) / 20.0)
    assert corrected
    assert sample.abs() == pytest.approx(expected)
    assert sample.phase() == pytest.approx(0.0)

  def test_keeps_phase(self) -> None:
    """Test that clamping preserves the phase."""
    sample = AttenuationSample(-3.0, 3.0)
    phase = sample.phase()
    sample.check_attenuation(500.0, 20_000.0)

    assert sample.abs() < 1.0
    assert sample.phase() == pytest.approx(phase)

  def test_is_idempotent(self) -> None:
    """Test that a second application is a no-op."""
    sample = AttenuationSample(0.0, 5.0)
    assert sample.check_attenuation(2000.0, 25_000.0)
    once = complex(sample)

    assert not sample.check_attenuation(2000.0, 25_000.0)
    assert complex(sample) == once

  @pytest.mark.parametrize(
    "sample",
    [AttenuationSample(0.5), AttenuationSample(1.0), AttenuationSample.not_valid()],
  )
  def test_leaves_loss_and_sentinel_alone(self, sample: AttenuationSample) -> None:
    """Test that samples with loss and the sentinel are untouched."""
    before = complex(sample)
    assert not sample.check_attenuation(1000.0, 10_000.0)
    assert complex(sample) == before
